import pytest

from conftest import USER
from notewright.core.errors import NotFound, StaleWrite, ValidationError
from notewright.core.ledger import LABEL_BEFORE_RESTORE, LABEL_GENERATED, EditHistoryLedger
from notewright.memory import repository
from notewright.memory.db import transaction


@pytest.fixture
def ledger():
    return EditHistoryLedger()


@pytest.fixture
def article(store, ledger):
    theme = repository.create_theme(USER, "Running")
    with transaction() as conn:
        created = repository.create_article(USER, theme.id, "First run", "Version one.", conn=conn)
        ledger.record_initial(conn, created)
    return created


def test_initial_snapshot(article, ledger) -> None:
    entries = ledger.history(USER, article.id)
    assert len(entries) == 1
    assert entries[0].edit_label == LABEL_GENERATED
    assert entries[0].content == "Version one."


def test_save_snapshots_previous_state(article, ledger) -> None:
    updated = ledger.save(USER, article.id, "First run", "Version two.", label="manual")

    assert updated.content == "Version two."
    assert updated.word_count == len("Version two.")
    assert updated.revision == article.revision + 1

    newest = ledger.history(USER, article.id)[0]
    assert newest.content == "Version one."
    assert newest.edit_label == "manual"


def test_unchanged_save_writes_no_history(article, ledger) -> None:
    same = ledger.save(USER, article.id, "First run", "Version one.")
    assert same.revision == article.revision
    assert len(ledger.history(USER, article.id)) == 1


def test_stale_revision_is_rejected(article, ledger) -> None:
    ledger.save(USER, article.id, "First run", "Version two.")
    with pytest.raises(StaleWrite):
        ledger.save(USER, article.id, "First run", "Version three.", expected_revision=article.revision)

    assert repository.get_article(USER, article.id).content == "Version two."
    assert len(ledger.history(USER, article.id)) == 2


def test_invalid_edit_is_rejected(article, ledger) -> None:
    with pytest.raises(ValidationError):
        ledger.save(USER, article.id, "", "content")
    with pytest.raises(ValidationError):
        ledger.save(USER, article.id, "t" * 201, "content")


def test_restore_round_trip(article, ledger) -> None:
    original = ledger.history(USER, article.id)[0]
    ledger.save(USER, article.id, "Second run", "Version two.")

    restored = ledger.restore(USER, article.id, original.id)

    assert restored.content == original.content
    assert restored.title == original.title
    entries = ledger.history(USER, article.id)
    assert entries[0].edit_label == LABEL_BEFORE_RESTORE
    assert entries[0].content == "Version two."
    assert entries[0].title == "Second run"
    # nothing was removed: initial, pre-edit, pre-restore
    assert len(entries) == 3


def test_restore_can_be_undone(article, ledger) -> None:
    original = ledger.history(USER, article.id)[0]
    ledger.save(USER, article.id, "First run", "Version two.")
    ledger.restore(USER, article.id, original.id)

    backup = ledger.history(USER, article.id)[0]
    undone = ledger.restore(USER, article.id, backup.id)
    assert undone.content == "Version two."


def test_restore_rejects_foreign_entry(article, ledger) -> None:
    other = repository.create_article(USER, article.theme_id, "Other", "Other body.")
    with transaction() as conn:
        foreign = ledger.record_initial(conn, other)

    with pytest.raises(NotFound):
        ledger.restore(USER, article.id, foreign.id)
