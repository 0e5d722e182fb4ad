# notewright/memory/repository.py
"""
Plain-function data access for every record type.

Every read and write is scoped to the acting user id. Functions that take
an optional `conn` join the caller's transaction when one is passed in and
otherwise run in their own.
"""

import sqlite3
from typing import List, Optional

from notewright.core.errors import NotFound, ValidationError
from notewright.memory.db import transaction
from notewright.memory.models import (
    INTERVIEW_ACTIVE,
    Article,
    ArticleEditHistory,
    Interview,
    InterviewMessage,
    Memo,
    StyleReference,
    Theme,
    ThemeArticleRef,
    count_words,
    now_iso,
)


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------

def _theme(row: sqlite3.Row) -> Theme:
    return Theme(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _memo(row: sqlite3.Row) -> Memo:
    return Memo(
        id=row["id"],
        theme_id=row["theme_id"],
        user_id=row["user_id"],
        content=row["content"],
        created_at=row["created_at"],
    )


def _interview(row: sqlite3.Row) -> Interview:
    return Interview(
        id=row["id"],
        theme_id=row["theme_id"],
        user_id=row["user_id"],
        target_length=row["target_length"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _message(row: sqlite3.Row) -> InterviewMessage:
    return InterviewMessage(
        id=row["id"],
        interview_id=row["interview_id"],
        role=row["role"],
        content=row["content"],
        created_at=row["created_at"],
    )


def _article(row: sqlite3.Row) -> Article:
    return Article(
        id=row["id"],
        theme_id=row["theme_id"],
        interview_id=row["interview_id"],
        user_id=row["user_id"],
        title=row["title"],
        content=row["content"],
        word_count=row["word_count"],
        revision=row["revision"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _history(row: sqlite3.Row) -> ArticleEditHistory:
    return ArticleEditHistory(
        id=row["id"],
        article_id=row["article_id"],
        user_id=row["user_id"],
        title=row["title"],
        content=row["content"],
        word_count=row["word_count"],
        edit_label=row["edit_label"] or "",
        created_at=row["created_at"],
    )


def _style_reference(row: sqlite3.Row) -> StyleReference:
    return StyleReference(
        id=row["id"],
        user_id=row["user_id"],
        label=row["label"],
        source_text=row["source_text"],
        is_default=bool(row["is_default"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------

def create_theme(user_id: str, title: str, description: str = "") -> Theme:
    ts = now_iso()
    with transaction() as conn:
        cur = conn.execute(
            """
            INSERT INTO themes (user_id, title, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, title, description or "", ts, ts),
        )
        theme_id = cur.lastrowid
    return get_theme(user_id, theme_id)


def get_theme(user_id: str, theme_id: int, conn: Optional[sqlite3.Connection] = None) -> Theme:
    with transaction(conn) as c:
        row = c.execute(
            "SELECT * FROM themes WHERE id = ? AND user_id = ?",
            (theme_id, user_id),
        ).fetchone()
    if row is None:
        raise NotFound(f"Theme {theme_id} not found")
    return _theme(row)


def list_themes(user_id: str) -> List[Theme]:
    with transaction() as conn:
        rows = conn.execute(
            "SELECT * FROM themes WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        ).fetchall()
    return [_theme(r) for r in rows]


def update_theme(user_id: str, theme_id: int, title: str, description: str = "") -> Theme:
    with transaction() as conn:
        cur = conn.execute(
            """
            UPDATE themes SET title = ?, description = ?, updated_at = ?
            WHERE id = ? AND user_id = ?
            """,
            (title, description or "", now_iso(), theme_id, user_id),
        )
        if cur.rowcount == 0:
            raise NotFound(f"Theme {theme_id} not found")
    return get_theme(user_id, theme_id)


def delete_theme(user_id: str, theme_id: int) -> None:
    """Delete a theme; memos, interviews, articles and their history go with it."""
    with transaction() as conn:
        cur = conn.execute("DELETE FROM themes WHERE id = ? AND user_id = ?", (theme_id, user_id))
        if cur.rowcount == 0:
            raise NotFound(f"Theme {theme_id} not found")


# ---------------------------------------------------------------------------
# Memos
# ---------------------------------------------------------------------------

def create_memo(user_id: str, theme_id: int, content: str) -> Memo:
    with transaction() as conn:
        get_theme(user_id, theme_id, conn=conn)
        cur = conn.execute(
            "INSERT INTO memos (theme_id, user_id, content, created_at) VALUES (?, ?, ?, ?)",
            (theme_id, user_id, content, now_iso()),
        )
        row = conn.execute("SELECT * FROM memos WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _memo(row)


def list_memos(user_id: str, theme_id: int) -> List[Memo]:
    with transaction() as conn:
        rows = conn.execute(
            "SELECT * FROM memos WHERE theme_id = ? AND user_id = ? ORDER BY created_at, id",
            (theme_id, user_id),
        ).fetchall()
    return [_memo(r) for r in rows]


def delete_memo(user_id: str, memo_id: int) -> None:
    with transaction() as conn:
        cur = conn.execute("DELETE FROM memos WHERE id = ? AND user_id = ?", (memo_id, user_id))
        if cur.rowcount == 0:
            raise NotFound(f"Memo {memo_id} not found")


# ---------------------------------------------------------------------------
# Interviews + messages
# ---------------------------------------------------------------------------

def create_interview(user_id: str, theme_id: int, target_length: int) -> Interview:
    ts = now_iso()
    with transaction() as conn:
        get_theme(user_id, theme_id, conn=conn)
        cur = conn.execute(
            """
            INSERT INTO interviews (theme_id, user_id, target_length, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (theme_id, user_id, target_length, INTERVIEW_ACTIVE, ts, ts),
        )
        interview_id = cur.lastrowid
    return get_interview(user_id, interview_id)


def get_interview(user_id: str, interview_id: int, conn: Optional[sqlite3.Connection] = None) -> Interview:
    with transaction(conn) as c:
        row = c.execute(
            "SELECT * FROM interviews WHERE id = ? AND user_id = ?",
            (interview_id, user_id),
        ).fetchone()
    if row is None:
        raise NotFound(f"Interview {interview_id} not found")
    return _interview(row)


def get_active_interview(user_id: str, theme_id: int) -> Optional[Interview]:
    """Most recent active interview of a theme, if any."""
    with transaction() as conn:
        row = conn.execute(
            """
            SELECT * FROM interviews
            WHERE theme_id = ? AND user_id = ? AND status = ?
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (theme_id, user_id, INTERVIEW_ACTIVE),
        ).fetchone()
    return _interview(row) if row is not None else None


def set_interview_status(interview_id: int, status: str, conn: Optional[sqlite3.Connection] = None) -> None:
    with transaction(conn) as c:
        c.execute(
            "UPDATE interviews SET status = ?, updated_at = ? WHERE id = ?",
            (status, now_iso(), interview_id),
        )


def list_messages(interview_id: int) -> List[InterviewMessage]:
    """Messages in creation order; never reordered."""
    with transaction() as conn:
        rows = conn.execute(
            """
            SELECT * FROM interview_messages
            WHERE interview_id = ?
            ORDER BY created_at, id
            """,
            (interview_id,),
        ).fetchall()
    return [_message(r) for r in rows]


def add_message(
    user_id: str,
    interview_id: int,
    role: str,
    content: str,
    conn: Optional[sqlite3.Connection] = None,
) -> InterviewMessage:
    with transaction(conn) as c:
        cur = c.execute(
            """
            INSERT INTO interview_messages (interview_id, user_id, role, content, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (interview_id, user_id, role, content, now_iso()),
        )
        c.execute("UPDATE interviews SET updated_at = ? WHERE id = ?", (now_iso(), interview_id))
        row = c.execute("SELECT * FROM interview_messages WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _message(row)


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

def create_article(
    user_id: str,
    theme_id: int,
    title: str,
    content: str,
    interview_id: Optional[int] = None,
    conn: Optional[sqlite3.Connection] = None,
) -> Article:
    ts = now_iso()
    with transaction(conn) as c:
        cur = c.execute(
            """
            INSERT INTO articles
                (theme_id, interview_id, user_id, title, content, word_count, revision, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (theme_id, interview_id, user_id, title, content, count_words(content), ts, ts),
        )
        return get_article(user_id, cur.lastrowid, conn=c)


def get_article(user_id: str, article_id: int, conn: Optional[sqlite3.Connection] = None) -> Article:
    with transaction(conn) as c:
        row = c.execute(
            "SELECT * FROM articles WHERE id = ? AND user_id = ?",
            (article_id, user_id),
        ).fetchone()
    if row is None:
        raise NotFound(f"Article {article_id} not found")
    return _article(row)


def list_articles(user_id: str, theme_id: Optional[int] = None) -> List[Article]:
    with transaction() as conn:
        if theme_id is None:
            rows = conn.execute(
                "SELECT * FROM articles WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT * FROM articles WHERE user_id = ? AND theme_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (user_id, theme_id),
            ).fetchall()
    return [_article(r) for r in rows]


def update_article_if_revision(
    conn: sqlite3.Connection,
    article_id: int,
    title: str,
    content: str,
    expected_revision: int,
) -> bool:
    """
    Overwrite title/content only if the stored revision still matches.
    Returns False when another write got there first.
    """
    cur = conn.execute(
        """
        UPDATE articles
        SET title = ?, content = ?, word_count = ?, revision = revision + 1, updated_at = ?
        WHERE id = ? AND revision = ?
        """,
        (title, content, count_words(content), now_iso(), article_id, expected_revision),
    )
    return cur.rowcount == 1


def delete_article(user_id: str, article_id: int) -> None:
    with transaction() as conn:
        cur = conn.execute("DELETE FROM articles WHERE id = ? AND user_id = ?", (article_id, user_id))
        if cur.rowcount == 0:
            raise NotFound(f"Article {article_id} not found")


# ---------------------------------------------------------------------------
# Edit history (insert + read only; entries are never updated)
# ---------------------------------------------------------------------------

def insert_history(conn: sqlite3.Connection, article: Article, edit_label: str = "") -> ArticleEditHistory:
    cur = conn.execute(
        """
        INSERT INTO article_edit_history
            (article_id, user_id, title, content, word_count, edit_label, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (article.id, article.user_id, article.title, article.content,
         article.word_count or 0, edit_label or "", now_iso()),
    )
    row = conn.execute("SELECT * FROM article_edit_history WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _history(row)


def list_history(user_id: str, article_id: int, limit: int = 50) -> List[ArticleEditHistory]:
    """History entries of an article, newest first."""
    with transaction() as conn:
        rows = conn.execute(
            """
            SELECT * FROM article_edit_history
            WHERE article_id = ? AND user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (article_id, user_id, limit),
        ).fetchall()
    return [_history(r) for r in rows]


def get_history_entry(
    user_id: str,
    history_id: int,
    conn: Optional[sqlite3.Connection] = None,
) -> ArticleEditHistory:
    with transaction(conn) as c:
        row = c.execute(
            "SELECT * FROM article_edit_history WHERE id = ? AND user_id = ?",
            (history_id, user_id),
        ).fetchone()
    if row is None:
        raise NotFound(f"History entry {history_id} not found")
    return _history(row)


# ---------------------------------------------------------------------------
# Style references
# ---------------------------------------------------------------------------

def _clear_default_style(conn: sqlite3.Connection, user_id: str, except_id: Optional[int] = None) -> None:
    conn.execute(
        """
        UPDATE style_references SET is_default = 0, updated_at = ?
        WHERE user_id = ? AND is_default = 1 AND id != ?
        """,
        (now_iso(), user_id, except_id if except_id is not None else -1),
    )


def create_style_reference(user_id: str, label: str, source_text: str, is_default: bool = False) -> StyleReference:
    ts = now_iso()
    with transaction() as conn:
        if is_default:
            _clear_default_style(conn, user_id)
        cur = conn.execute(
            """
            INSERT INTO style_references (user_id, label, source_text, is_default, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, label, source_text, int(bool(is_default)), ts, ts),
        )
        row = conn.execute("SELECT * FROM style_references WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _style_reference(row)


def update_style_reference(
    user_id: str,
    style_id: int,
    label: str,
    source_text: str,
    is_default: bool,
) -> StyleReference:
    with transaction() as conn:
        if is_default:
            _clear_default_style(conn, user_id, except_id=style_id)
        cur = conn.execute(
            """
            UPDATE style_references SET label = ?, source_text = ?, is_default = ?, updated_at = ?
            WHERE id = ? AND user_id = ?
            """,
            (label, source_text, int(bool(is_default)), now_iso(), style_id, user_id),
        )
        if cur.rowcount == 0:
            raise NotFound(f"Style reference {style_id} not found")
        row = conn.execute("SELECT * FROM style_references WHERE id = ?", (style_id,)).fetchone()
    return _style_reference(row)


def get_style_reference(user_id: str, style_id: int) -> StyleReference:
    with transaction() as conn:
        row = conn.execute(
            "SELECT * FROM style_references WHERE id = ? AND user_id = ?",
            (style_id, user_id),
        ).fetchone()
    if row is None:
        raise NotFound(f"Style reference {style_id} not found")
    return _style_reference(row)


def get_default_style_reference(user_id: str) -> Optional[StyleReference]:
    with transaction() as conn:
        row = conn.execute(
            "SELECT * FROM style_references WHERE user_id = ? AND is_default = 1 LIMIT 1",
            (user_id,),
        ).fetchone()
    return _style_reference(row) if row is not None else None


def list_style_references(user_id: str) -> List[StyleReference]:
    with transaction() as conn:
        rows = conn.execute(
            "SELECT * FROM style_references WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        ).fetchall()
    return [_style_reference(r) for r in rows]


def delete_style_reference(user_id: str, style_id: int) -> None:
    with transaction() as conn:
        cur = conn.execute("DELETE FROM style_references WHERE id = ? AND user_id = ?", (style_id, user_id))
        if cur.rowcount == 0:
            raise NotFound(f"Style reference {style_id} not found")


# ---------------------------------------------------------------------------
# Theme reference articles
# ---------------------------------------------------------------------------

def add_article_ref(user_id: str, theme_id: int, article_id: int) -> ThemeArticleRef:
    with transaction() as conn:
        get_theme(user_id, theme_id, conn=conn)
        article = get_article(user_id, article_id, conn=conn)
        if article.theme_id == theme_id:
            raise ValidationError("An article cannot reference its own theme.")
        exists = conn.execute(
            "SELECT 1 FROM theme_article_refs WHERE theme_id = ? AND article_id = ?",
            (theme_id, article_id),
        ).fetchone()
        if exists:
            raise ValidationError("This article is already referenced by the theme.")
        cur = conn.execute(
            "INSERT INTO theme_article_refs (theme_id, article_id, user_id, created_at) VALUES (?, ?, ?, ?)",
            (theme_id, article_id, user_id, now_iso()),
        )
        ref_id = cur.lastrowid
    return ThemeArticleRef(
        id=ref_id,
        theme_id=theme_id,
        article_id=article_id,
        user_id=user_id,
        created_at=now_iso(),
        article_title=article.title,
        article_content=article.content,
    )


def list_article_refs(user_id: str, theme_id: int) -> List[ThemeArticleRef]:
    with transaction() as conn:
        rows = conn.execute(
            """
            SELECT r.id, r.theme_id, r.article_id, r.user_id, r.created_at,
                   a.title AS article_title, a.content AS article_content
            FROM theme_article_refs r
            JOIN articles a ON a.id = r.article_id
            WHERE r.theme_id = ? AND r.user_id = ?
            ORDER BY r.created_at DESC, r.id DESC
            """,
            (theme_id, user_id),
        ).fetchall()
    return [
        ThemeArticleRef(
            id=r["id"],
            theme_id=r["theme_id"],
            article_id=r["article_id"],
            user_id=r["user_id"],
            created_at=r["created_at"],
            article_title=r["article_title"],
            article_content=r["article_content"],
        )
        for r in rows
    ]


def remove_article_ref(user_id: str, ref_id: int) -> None:
    with transaction() as conn:
        cur = conn.execute("DELETE FROM theme_article_refs WHERE id = ? AND user_id = ?", (ref_id, user_id))
        if cur.rowcount == 0:
            raise NotFound(f"Reference {ref_id} not found")
