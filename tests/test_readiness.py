from notewright.core.readiness import extract, progress_percent, rescale, stage


def test_display_scale_end_points() -> None:
    assert rescale(0) == 0
    assert rescale(80) == 100
    assert rescale(100) == 125


def test_unknown_is_never_computed() -> None:
    assert rescale(-1) is None
    assert rescale(None) is None


def test_display_is_monotonic_over_normal_range() -> None:
    values = [rescale(r) for r in range(0, 81)]
    assert values == sorted(values)


def test_rounding_is_half_up() -> None:
    # 2 / 80 * 100 == 2.5
    assert rescale(2) == 3
    assert rescale(40) == 50


def test_progress_is_clamped_for_rendering() -> None:
    assert progress_percent(125) == 100
    assert progress_percent(None) == 0
    assert progress_percent(63) == 63


def test_stage_labels() -> None:
    assert stage(None) == ("", "")
    assert stage(10)[0] == "intro"
    assert stage(30)[0] == "basics"
    assert stage(60)[0] == "deepening"
    assert stage(90)[0] == "almost"
    assert stage(100)[0] == "ready"
    assert stage(125)[0] == "ready"


def test_extract_removes_marker() -> None:
    visible, raw = extract("What got you started?\n<<READINESS:40>>")
    assert visible == "What got you started?"
    assert raw == 40


def test_extract_without_marker_is_unknown() -> None:
    visible, raw = extract("Tell me more.")
    assert visible == "Tell me more."
    assert raw is None


def test_extract_last_marker_wins_and_all_are_removed() -> None:
    visible, raw = extract("<<READINESS:10>>Next question?<<READINESS: 64 >>")
    assert visible == "Next question?"
    assert raw == 64


def test_extract_negative_and_oversized_values() -> None:
    assert extract("Q <<READINESS:-1>>")[1] is None
    assert extract("Q <<READINESS:250>>")[1] == 100
