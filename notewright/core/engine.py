# notewright/core/engine.py

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from notewright.core.errors import GenerationFailed, RateLimited
from notewright.core.generation import ChatMessage, GenerationRequest, TextGenerator
from notewright.core.normalizer import NormalizedArticle, normalize, strip_reference_echo
from notewright.core import readiness
from notewright.prompts.context import PromptContext
from notewright.prompts.interview import OPENING_INSTRUCTION
from notewright.prompts.registry import PromptRegistry
from notewright.prompts.writing import REWRITE_REQUEST, build_rewrite_prompt, synthesis_request
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS_CEILING = 3
UNTITLED = "Untitled article"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget for generation calls. Only RateLimited failures are
    retried; the delay before retry n (0-based) is (n + 1) * base_delay,
    raised to the provider's Retry-After hint when that is longer.
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if not 1 <= self.max_attempts <= MAX_ATTEMPTS_CEILING:
            raise ValueError(f"max_attempts must be between 1 and {MAX_ATTEMPTS_CEILING}")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    def delay_for(self, attempt_index: int, retry_after: Optional[float] = None) -> float:
        delay = (attempt_index + 1) * self.base_delay
        if retry_after is not None and retry_after > delay:
            return retry_after
        return delay


@dataclass(frozen=True)
class InterviewReply:
    content: str
    readiness: Optional[int]
    prompt_version: str


@dataclass(frozen=True)
class ArticleDraft:
    title: str
    content: str
    prompt_version: str
    dropped_lines: int = 0


class GenerationEngine:
    """
    Builds prompts from the registry's current templates, calls the
    generator under the retry policy and normalizes what comes back.
    """

    def __init__(
        self,
        generator: TextGenerator,
        registry: PromptRegistry,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        self.generator = generator
        self.registry = registry
        self.retry = retry or RetryPolicy()

    async def _call(self, request: GenerationRequest) -> str:
        policy = self.retry
        last_err: Optional[Exception] = None

        for attempt in range(policy.max_attempts):
            try:
                raw = await self.generator.generate(request)
            except RateLimited as e:
                last_err = e
                if attempt + 1 >= policy.max_attempts:
                    break
                delay = policy.delay_for(attempt, e.retry_after)
                logger.warning("[engine] %s rate limited attempt=%d/%d; retrying in %.1fs",
                               request.purpose, attempt + 1, policy.max_attempts, delay)
                await policy.sleep(delay)
                continue
            except Exception as e:
                logger.error("[engine] %s failed attempt=%d err=%s", request.purpose, attempt + 1, e)
                raise GenerationFailed(
                    f"Generation failed: {e}", attempts=attempt + 1
                ) from e

            raw = (raw or "").strip()
            if not raw:
                logger.error("[engine] %s returned empty output attempt=%d", request.purpose, attempt + 1)
                raise GenerationFailed("Generation returned an empty response.", attempts=attempt + 1)
            return raw

        logger.error("[engine] %s gave up after %d rate-limited attempts", request.purpose, policy.max_attempts)
        raise GenerationFailed(
            "Generation is rate limited; please try again later.", attempts=policy.max_attempts
        ) from last_err

    async def next_question(
        self,
        ctx: PromptContext,
        messages: List[ChatMessage],
        registry: Optional[PromptRegistry] = None,
    ) -> InterviewReply:
        version = (registry or self.registry).current("interview")
        dialogue = [{"role": m["role"], "content": m["content"]} for m in messages]
        if not dialogue:
            dialogue = [{"role": "user", "content": OPENING_INSTRUCTION}]

        raw = await self._call(GenerationRequest(
            purpose="interview",
            system_prompt=version.build(ctx),
            messages=dialogue,
            context=ctx,
            prompt_version=version.id,
        ))

        visible, raw_readiness = readiness.extract(raw)
        if not visible:
            raise GenerationFailed("Interview reply was empty after removing the readiness marker.", attempts=1)
        return InterviewReply(content=visible, readiness=raw_readiness, prompt_version=version.id)

    async def write_article(
        self,
        ctx: PromptContext,
        transcript: List[ChatMessage],
        registry: Optional[PromptRegistry] = None,
    ) -> ArticleDraft:
        version = (registry or self.registry).current("writing")
        dialogue = [{"role": m["role"], "content": m["content"]} for m in transcript]

        raw = await self._call(GenerationRequest(
            purpose="writing",
            system_prompt=version.build(ctx),
            messages=[{"role": "user", "content": synthesis_request(dialogue)}],
            context=ctx,
            prompt_version=version.id,
            transcript=dialogue,
        ))

        article = normalize(raw, ctx.theme_title or UNTITLED)
        return self._draft(article, version.id)

    async def rewrite_article(
        self,
        ctx: PromptContext,
        title: str,
        content: str,
        style_text: str,
    ) -> ArticleDraft:
        raw = await self._call(GenerationRequest(
            purpose="rewrite",
            system_prompt=build_rewrite_prompt(title, content, style_text),
            messages=[{"role": "user", "content": REWRITE_REQUEST}],
            context=ctx,
            prompt_version="rewrite",
            source_title=title,
            source_content=content,
        ))

        text, echoed = strip_reference_echo(raw, style_text, source=content)
        article = normalize(text, title or UNTITLED)
        return self._draft(article, "rewrite", extra_dropped=echoed)

    @staticmethod
    def _draft(article: NormalizedArticle, version_id: str, extra_dropped: int = 0) -> ArticleDraft:
        if not article.body.strip():
            raise GenerationFailed("Generated article has no body after normalization.", attempts=1)
        return ArticleDraft(
            title=article.title,
            content=article.body,
            prompt_version=version_id,
            dropped_lines=article.dropped_lines + extra_dropped,
        )
