from notewright.core.normalizer import is_leak_line, normalize, split_title, strip_meta_leaks, strip_reference_echo


def test_heading_becomes_title() -> None:
    article = normalize("# Foo\nBar\nBaz", "Theme")
    assert article.title == "Foo"
    assert article.body == "Bar\nBaz"
    assert article.dropped_lines == 0


def test_second_level_heading_is_accepted() -> None:
    title, body = split_title("## Notes from a trip\n\nDay one.", "Theme")
    assert title == "Notes from a trip"
    assert body == "Day one."


def test_no_heading_falls_back_to_theme_title() -> None:
    article = normalize("Just prose.\nMore prose.", "My theme")
    assert article.title == "My theme"
    assert article.body == "Just prose.\nMore prose."


def test_empty_heading_falls_back() -> None:
    title, body = split_title("# \nBody", "Fallback")
    assert title == "Fallback"
    assert body == "Body"


def test_leaked_label_lines_are_dropped() -> None:
    raw = "# Real title\nTitle: something\nFirst paragraph.\n**Tone:** friendly\nLast paragraph."
    article = normalize(raw, "Theme")
    assert article.title == "Real title"
    assert "Title: something" not in article.body
    assert "Tone" not in article.body
    assert article.body == "First paragraph.\nLast paragraph."
    assert article.dropped_lines >= 1


def test_leak_detection_is_line_anchored() -> None:
    assert is_leak_line("Word count: 2000")
    assert is_leak_line("- structure: intro, body, end")
    assert not is_leak_line("The title of the book escaped me.")
    assert not is_leak_line("My writing has a style of its own")


def test_strip_meta_leaks_counts_drops() -> None:
    text, dropped = strip_meta_leaks("Pronoun: I\nTarget length: 2000\nkept")
    assert text == "kept"
    assert dropped == 2


def test_reference_echo_is_removed_unless_in_source() -> None:
    reference = "The sea was calm that morning and I felt at home.\nshort"
    source = "I moved to the coast last spring."
    output = (
        "# Coast\n"
        "The sea was calm that morning and I felt at home.\n"
        "I moved to the coast last spring."
    )
    text, dropped = strip_reference_echo(output, reference, source=source)
    assert dropped == 1
    assert "The sea was calm" not in text
    assert "I moved to the coast last spring." in text


def test_reference_echo_keeps_lines_shared_with_source() -> None:
    line = "This sentence is both in the sample and the source."
    text, dropped = strip_reference_echo(line, line, source=line)
    assert dropped == 0
    assert text == line
