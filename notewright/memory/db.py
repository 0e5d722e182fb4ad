# notewright/memory/db.py

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from notewright.core.errors import StoreUnavailable
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

_db_path: Optional[Path] = None


def configure(db_path: str) -> None:
    """
    Point the store at a database file and make sure the schema exists.
    Called once at startup (and by tests with a temporary path).
    """
    global _db_path
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _db_path = path
    init_db()


def get_db_path() -> Path:
    global _db_path
    if _db_path is None:
        from notewright.config.settings import load_settings
        _db_path = Path(load_settings().db_path)
    return _db_path


def get_connection() -> sqlite3.Connection:
    """
    Return a SQLite connection with Row factory and foreign keys enforced.
    Caller is responsible for closing.
    """
    try:
        conn = sqlite3.connect(get_db_path())
    except sqlite3.Error as e:
        logger.error("Failed to open database %s: %s", get_db_path(), e)
        raise StoreUnavailable(f"Database unavailable: {e}") from e
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
    """
    Yield a connection inside a transaction: commit on success, roll back
    on any error. When an outer connection is passed in, the outer caller
    owns the commit and this is a no-op wrapper.
    """
    if conn is not None:
        yield conn
        return

    own = get_connection()
    try:
        yield own
        own.commit()
    except sqlite3.Error as e:
        own.rollback()
        logger.error("Database error, transaction rolled back: %s", e)
        raise StoreUnavailable(f"Database error: {e}") from e
    except Exception:
        own.rollback()
        raise
    finally:
        own.close()


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS themes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        theme_id INTEGER NOT NULL,
        user_id TEXT NOT NULL,
        content TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (theme_id) REFERENCES themes (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS interviews (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        theme_id INTEGER NOT NULL,
        user_id TEXT NOT NULL,
        target_length INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'active',   -- 'active' or 'completed'
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (theme_id) REFERENCES themes (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS interview_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        interview_id INTEGER NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL,                     -- 'assistant' or 'user'
        content TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (interview_id) REFERENCES interviews (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        theme_id INTEGER NOT NULL,
        interview_id INTEGER,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        word_count INTEGER NOT NULL,
        revision INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (theme_id) REFERENCES themes (id) ON DELETE CASCADE,
        FOREIGN KEY (interview_id) REFERENCES interviews (id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS article_edit_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        article_id INTEGER NOT NULL,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        word_count INTEGER NOT NULL,
        edit_label TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        FOREIGN KEY (article_id) REFERENCES articles (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS style_references (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        label TEXT NOT NULL,
        source_text TEXT NOT NULL,
        is_default INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS theme_article_refs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        theme_id INTEGER NOT NULL,
        article_id INTEGER NOT NULL,
        user_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (theme_id, article_id),
        FOREIGN KEY (theme_id) REFERENCES themes (id) ON DELETE CASCADE,
        FOREIGN KEY (article_id) REFERENCES articles (id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_interview ON interview_messages (interview_id, created_at, id)",
    "CREATE INDEX IF NOT EXISTS idx_history_article ON article_edit_history (article_id, created_at, id)",
)


def init_db() -> None:
    """
    Initialize the database schema if it does not exist.
    Safe to call multiple times.
    """
    with transaction() as conn:
        for statement in SCHEMA:
            conn.execute(statement)
