# notewright/core/ledger.py
"""
Append-only edit history for articles.

Every accepted write to an article's (title, content) first stores the
current persisted state as a history entry and only then overwrites the
article, inside one transaction. Entries are never updated or deleted;
restoring copies an entry back onto the article after snapshotting the
live state, so a restore can itself be undone by restoring that snapshot.

Lost updates are prevented by the article's revision counter: the
overwrite only applies when the revision read at the start is still the
stored one.
"""

import sqlite3
from typing import List, Optional

from notewright.core.errors import NotFound, StaleWrite
from notewright.core.validation import ARTICLE_CONTENT_MAX, ARTICLE_TITLE_MAX, require_text
from notewright.memory import repository
from notewright.memory.db import transaction
from notewright.memory.models import Article, ArticleEditHistory
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

LABEL_GENERATED = "Generated"
LABEL_BEFORE_REINTERVIEW = "Before re-interview"
LABEL_BEFORE_REWRITE = "Before rewrite"
LABEL_BEFORE_RESTORE = "Backup before restore"

HISTORY_LIMIT = 50


class EditHistoryLedger:

    def record_initial(self, conn: sqlite3.Connection, article: Article,
                       label: str = LABEL_GENERATED) -> ArticleEditHistory:
        """First snapshot of a freshly synthesized article (caller's transaction)."""
        entry = repository.insert_history(conn, article, label)
        logger.info("[ledger] article=%s initial snapshot history=%s", article.id, entry.id)
        return entry

    def save(
        self,
        user_id: str,
        article_id: int,
        title: str,
        content: str,
        label: str = "",
        expected_revision: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Article:
        title = require_text(title, "title", ARTICLE_TITLE_MAX)
        content = require_text(content, "content", ARTICLE_CONTENT_MAX)

        with transaction(conn) as c:
            current = repository.get_article(user_id, article_id, conn=c)
            if expected_revision is not None and expected_revision != current.revision:
                raise StaleWrite(
                    f"Article {article_id} is at revision {current.revision}, not {expected_revision}."
                )

            if current.title == title and current.content == content:
                logger.info("[ledger] article=%s unchanged; no history entry", article_id)
                return current

            entry = repository.insert_history(c, current, label)
            if not repository.update_article_if_revision(c, article_id, title, content, current.revision):
                raise StaleWrite(f"Article {article_id} was modified concurrently.")

            updated = repository.get_article(user_id, article_id, conn=c)

        logger.info("[ledger] article=%s saved revision=%d snapshot=%s label=%r",
                    article_id, updated.revision, entry.id, label)
        return updated

    def restore(self, user_id: str, article_id: int, history_id: int) -> Article:
        with transaction() as c:
            entry = repository.get_history_entry(user_id, history_id, conn=c)
            if entry.article_id != article_id:
                raise NotFound(f"History entry {history_id} does not belong to article {article_id}")

            current = repository.get_article(user_id, article_id, conn=c)
            backup = repository.insert_history(c, current, LABEL_BEFORE_RESTORE)
            if not repository.update_article_if_revision(c, article_id, entry.title, entry.content,
                                                         current.revision):
                raise StaleWrite(f"Article {article_id} was modified concurrently.")

            restored = repository.get_article(user_id, article_id, conn=c)

        logger.info("[ledger] article=%s restored from history=%s backup=%s",
                    article_id, history_id, backup.id)
        return restored

    def history(self, user_id: str, article_id: int, limit: int = HISTORY_LIMIT) -> List[ArticleEditHistory]:
        repository.get_article(user_id, article_id)
        return repository.list_history(user_id, article_id, limit=limit)
