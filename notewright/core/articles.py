# notewright/core/articles.py

from typing import Optional

from notewright.core.engine import GenerationEngine
from notewright.core.ledger import LABEL_BEFORE_REWRITE, EditHistoryLedger
from notewright.core.validation import ARTICLE_CONTENT_MAX, ARTICLE_TITLE_MAX, require_user
from notewright.memory import repository
from notewright.memory.models import Article
from notewright.prompts.context import PromptContext
from notewright.utils.logging import get_logger

logger = get_logger(__name__)


class ArticleEditor:
    """Manual edits and style rewrites. Every write goes through the ledger."""

    def __init__(self, engine: GenerationEngine, ledger: Optional[EditHistoryLedger] = None) -> None:
        self.engine = engine
        self.ledger = ledger or EditHistoryLedger()

    def edit(
        self,
        user_id: str,
        article_id: int,
        title: str,
        content: str,
        label: str = "",
        expected_revision: Optional[int] = None,
    ) -> Article:
        user_id = require_user(user_id)
        return self.ledger.save(user_id, article_id, title, content,
                                label=label, expected_revision=expected_revision)

    async def rewrite(self, user_id: str, article_id: int, style_reference_id: int) -> Article:
        """
        Restyle an article after a style reference. The source revision is
        pinned before generation, so an edit landing during the call makes
        the rewrite fail with StaleWrite instead of overwriting it.
        """
        user_id = require_user(user_id)
        article = repository.get_article(user_id, article_id)
        style = repository.get_style_reference(user_id, style_reference_id)
        theme = repository.get_theme(user_id, article.theme_id)

        ctx = PromptContext(
            theme_title=theme.title,
            theme_description=theme.description,
            style_reference_text=style.source_text,
        )
        draft = await self.engine.rewrite_article(ctx, article.title, article.content, style.source_text)

        updated = self.ledger.save(
            user_id,
            article_id,
            draft.title[:ARTICLE_TITLE_MAX].strip() or article.title,
            draft.content[:ARTICLE_CONTENT_MAX],
            label=LABEL_BEFORE_REWRITE,
            expected_revision=article.revision,
        )
        logger.info("[rewrite] article=%s style=%s revision=%d dropped_lines=%d",
                    article_id, style_reference_id, updated.revision, draft.dropped_lines)
        return updated
