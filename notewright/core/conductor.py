# notewright/core/conductor.py
"""
Interview conductor: the per-session dialogue state machine.

    NotStarted --start--> Active --complete|close--> Completed (terminal)

While Active the conductor asks, records answers and handles skips.
`complete` writes the article; `close` ends the interview without one.
Each turn is generated first and persisted afterwards, so a failed generation
leaves the stored dialogue exactly as it was and the caller can retry the
whole operation.

Only one generation per interview may be in flight. A request that arrives
while another is pending is dropped, not queued.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Hashable, List, Optional, Sequence, Set

from notewright.core import readiness as readiness_scale
from notewright.core.engine import GenerationEngine
from notewright.core.errors import InvalidTransition, NotFound, ValidationError
from notewright.core.ledger import LABEL_BEFORE_REINTERVIEW, EditHistoryLedger
from notewright.core.validation import (
    ANSWER_MAX,
    ARTICLE_CONTENT_MAX,
    ARTICLE_TITLE_MAX,
    require_target_length,
    require_user,
    require_writing_style,
)
from notewright.memory import repository
from notewright.memory.db import transaction
from notewright.memory.models import (
    INTERVIEW_COMPLETED,
    ROLE_ASSISTANT,
    ROLE_USER,
    Article,
    Interview,
    InterviewMessage,
)
from notewright.prompts.context import PromptContext, ReferenceArticle, memo_excerpts
from notewright.prompts.interview import SKIP_SENTINEL
from notewright.prompts.registry import PromptRegistry
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

# Completion is offered once at least one question and one answer exist.
MIN_MESSAGES_TO_COMPLETE = 2


def may_complete(messages: Sequence[object]) -> bool:
    """Caller-side gate for offering completion."""
    return len(messages) >= MIN_MESSAGES_TO_COMPLETE


class SingleFlight:
    """
    Per-key in-flight registry for a single-threaded event loop.
    `claim` yields False when the key is already taken; the caller is
    expected to drop its request in that case.
    """

    def __init__(self) -> None:
        self._in_flight: Set[Hashable] = set()

    def busy(self, key: Hashable) -> bool:
        return key in self._in_flight

    @asynccontextmanager
    async def claim(self, key: Hashable) -> AsyncIterator[bool]:
        if key in self._in_flight:
            yield False
            return
        self._in_flight.add(key)
        try:
            yield True
        finally:
            self._in_flight.discard(key)


@dataclass
class TurnOutcome:
    interview: Interview
    messages: List[InterviewMessage]
    added: List[InterviewMessage] = field(default_factory=list)
    readiness: Optional[int] = None
    dropped: bool = False

    @property
    def readiness_display(self) -> Optional[int]:
        return readiness_scale.rescale(self.readiness)

    @property
    def can_complete(self) -> bool:
        return self.interview.is_active and may_complete(self.messages)


@dataclass
class CompletionOptions:
    pronoun: Optional[str] = None
    writing_style: Optional[str] = None
    style_reference_id: Optional[int] = None
    # Re-interview: overwrite this article (through the ledger) instead of creating one.
    article_id: Optional[int] = None


@dataclass
class CompletionOutcome:
    interview: Interview
    article: Optional[Article] = None
    dropped: bool = False


class InterviewConductor:

    def __init__(
        self,
        engine: GenerationEngine,
        registry: PromptRegistry,
        ledger: Optional[EditHistoryLedger] = None,
        flights: Optional[SingleFlight] = None,
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.ledger = ledger or EditHistoryLedger()
        self.flights = flights or SingleFlight()

    # ---------- context ----------

    def build_context(
        self,
        user_id: str,
        interview: Interview,
        options: Optional[CompletionOptions] = None,
    ) -> PromptContext:
        theme = repository.get_theme(user_id, interview.theme_id)
        memos = [m.content for m in repository.list_memos(user_id, theme.id)]
        refs = tuple(
            ReferenceArticle(title=r.article_title, content=r.article_content)
            for r in repository.list_article_refs(user_id, theme.id)
        )

        pronoun = writing_style = style_text = None
        if options is not None:
            pronoun = options.pronoun
            writing_style = require_writing_style(options.writing_style)
            if options.style_reference_id is not None:
                style_text = repository.get_style_reference(user_id, options.style_reference_id).source_text
            else:
                default = repository.get_default_style_reference(user_id)
                style_text = default.source_text if default else None

        return PromptContext(
            theme_title=theme.title,
            theme_description=theme.description,
            memos=memo_excerpts(memos),
            target_length=interview.target_length,
            pronoun=pronoun,
            writing_style=writing_style,
            reference_articles=refs,
            style_reference_text=style_text,
        )

    # ---------- state helpers ----------

    def _require_active(self, user_id: str, interview_id: int) -> Interview:
        interview = repository.get_interview(user_id, interview_id)
        if not interview.is_active:
            raise InvalidTransition(f"Interview {interview_id} is already completed.")
        return interview

    def _dropped_turn(self, user_id: str, interview_id: int) -> TurnOutcome:
        logger.warning("[conductor] interview=%s request dropped: generation already in flight", interview_id)
        interview = repository.get_interview(user_id, interview_id)
        return TurnOutcome(
            interview=interview,
            messages=repository.list_messages(interview_id),
            dropped=True,
        )

    async def _generate_turn(self, user_id: str, interview: Interview, pending: Sequence[str] = ()) -> TurnOutcome:
        """
        Ask for the next question with `pending` user turns appended to the
        history, then persist the pending turns and the question together.
        """
        history = repository.list_messages(interview.id)
        chat = [m.as_chat() for m in history] + [{"role": ROLE_USER, "content": p} for p in pending]
        ctx = self.build_context(user_id, interview)

        reply = await self.engine.next_question(ctx, chat, registry=self.registry)

        added: List[InterviewMessage] = []
        with transaction() as conn:
            for text in pending:
                added.append(repository.add_message(user_id, interview.id, ROLE_USER, text, conn=conn))
            added.append(repository.add_message(user_id, interview.id, ROLE_ASSISTANT, reply.content, conn=conn))

        logger.info("[conductor] interview=%s turn added=%d readiness=%s prompt=%s",
                    interview.id, len(added), reply.readiness, reply.prompt_version)
        return TurnOutcome(
            interview=repository.get_interview(user_id, interview.id),
            messages=history + added,
            added=added,
            readiness=reply.readiness,
        )

    # ---------- transitions ----------

    async def start(self, user_id: str, theme_id: int, target_length: int) -> TurnOutcome:
        """
        Begin an interview for a theme, or resume the theme's active one.
        A fresh interview gets its opening question immediately.
        """
        user_id = require_user(user_id)
        target_length = require_target_length(target_length)
        repository.get_theme(user_id, theme_id)

        interview = repository.get_active_interview(user_id, theme_id)
        if interview is None:
            interview = repository.create_interview(user_id, theme_id, target_length)
            logger.info("[conductor] interview=%s created theme=%s target_length=%d",
                        interview.id, theme_id, target_length)
        else:
            logger.info("[conductor] interview=%s resumed theme=%s", interview.id, theme_id)
            if interview.target_length != target_length:
                logger.warning(
                    "[conductor] interview=%s keeps target_length=%d; requested %d ignored on resume",
                    interview.id, interview.target_length, target_length,
                )

        messages = repository.list_messages(interview.id)
        if messages:
            return TurnOutcome(interview=interview, messages=messages)
        return await self.ask(user_id, interview.id)

    async def ask(self, user_id: str, interview_id: int) -> TurnOutcome:
        user_id = require_user(user_id)
        async with self.flights.claim(interview_id) as claimed:
            if not claimed:
                return self._dropped_turn(user_id, interview_id)
            interview = self._require_active(user_id, interview_id)
            return await self._generate_turn(user_id, interview)

    async def answer(self, user_id: str, interview_id: int, text: str) -> TurnOutcome:
        """Record the user's answer verbatim and ask the next question."""
        user_id = require_user(user_id)
        if not (text or "").strip():
            raise ValidationError("answer must not be empty.")
        if len(text) > ANSWER_MAX:
            raise ValidationError(f"answer must be at most {ANSWER_MAX} characters.")

        async with self.flights.claim(interview_id) as claimed:
            if not claimed:
                return self._dropped_turn(user_id, interview_id)
            interview = self._require_active(user_id, interview_id)
            return await self._generate_turn(user_id, interview, pending=[text])

    async def skip(self, user_id: str, interview_id: int) -> TurnOutcome:
        """
        Skip the pending question: a sentinel user turn stands in for the
        answer so the history stays alternating, then the next question is
        asked.
        """
        user_id = require_user(user_id)
        async with self.flights.claim(interview_id) as claimed:
            if not claimed:
                return self._dropped_turn(user_id, interview_id)
            interview = self._require_active(user_id, interview_id)
            history = repository.list_messages(interview_id)
            if not history or history[-1].role != ROLE_ASSISTANT:
                raise ValidationError("There is no pending question to skip.")
            return await self._generate_turn(user_id, interview, pending=[SKIP_SENTINEL])

    async def complete(
        self,
        user_id: str,
        interview_id: int,
        options: Optional[CompletionOptions] = None,
    ) -> CompletionOutcome:
        """
        Write the article from the frozen transcript, then persist the
        article, its first ledger snapshot and the status flip in one
        transaction. A generation failure leaves the interview active.
        """
        user_id = require_user(user_id)
        options = options or CompletionOptions()

        async with self.flights.claim(interview_id) as claimed:
            if not claimed:
                logger.warning("[conductor] interview=%s completion dropped: generation in flight", interview_id)
                return CompletionOutcome(interview=repository.get_interview(user_id, interview_id), dropped=True)

            interview = self._require_active(user_id, interview_id)
            if options.article_id is not None:
                target = repository.get_article(user_id, options.article_id)
                if target.theme_id != interview.theme_id:
                    raise NotFound(f"Article {options.article_id} does not belong to this theme.")

            transcript = [m.as_chat() for m in repository.list_messages(interview_id)]
            ctx = self.build_context(user_id, interview, options)

            draft = await self.engine.write_article(ctx, transcript, registry=self.registry)
            title = draft.title[:ARTICLE_TITLE_MAX].strip() or ctx.theme_title
            content = draft.content[:ARTICLE_CONTENT_MAX]

            with transaction() as conn:
                if options.article_id is not None:
                    article = self.ledger.save(
                        user_id, options.article_id, title, content,
                        label=LABEL_BEFORE_REINTERVIEW, conn=conn,
                    )
                else:
                    article = repository.create_article(
                        user_id, interview.theme_id, title, content,
                        interview_id=interview.id, conn=conn,
                    )
                    self.ledger.record_initial(conn, article)
                repository.set_interview_status(interview.id, INTERVIEW_COMPLETED, conn=conn)

            logger.info("[conductor] interview=%s completed article=%s words=%d prompt=%s dropped_lines=%d",
                        interview.id, article.id, article.word_count, draft.prompt_version, draft.dropped_lines)
            return CompletionOutcome(
                interview=repository.get_interview(user_id, interview.id),
                article=article,
            )

    async def close(self, user_id: str, interview_id: int) -> Interview:
        """Mark the interview completed without writing an article."""
        user_id = require_user(user_id)
        async with self.flights.claim(interview_id) as claimed:
            if not claimed:
                raise InvalidTransition(f"Interview {interview_id} has a generation in flight.")
            interview = self._require_active(user_id, interview_id)
            repository.set_interview_status(interview.id, INTERVIEW_COMPLETED)
            logger.info("[conductor] interview=%s closed without an article", interview.id)
            return repository.get_interview(user_id, interview.id)
