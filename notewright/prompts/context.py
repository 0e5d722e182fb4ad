# notewright/prompts/context.py

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

WRITING_STYLES = ("polite", "plain")
DEFAULT_PRONOUN = "I"
DEFAULT_TARGET_LENGTH = 2000

# Memo excerpts longer than this are cut before they reach a prompt.
MAX_MEMO_EXCERPT_CHARS = 600


@dataclass(frozen=True)
class ReferenceArticle:
    title: str
    content: str


@dataclass(frozen=True)
class PromptContext:
    """
    Everything a prompt template may mention about the piece being written.
    Templates pick what they need; unknown fields are simply ignored.
    """
    theme_title: str
    theme_description: str = ""
    memos: Tuple[str, ...] = field(default_factory=tuple)
    target_length: int = DEFAULT_TARGET_LENGTH
    pronoun: Optional[str] = None
    writing_style: Optional[str] = None
    reference_articles: Tuple[ReferenceArticle, ...] = field(default_factory=tuple)
    style_reference_text: Optional[str] = None

    @property
    def effective_pronoun(self) -> str:
        return (self.pronoun or "").strip() or DEFAULT_PRONOUN

    @property
    def is_plain_style(self) -> bool:
        return (self.writing_style or "").strip().lower() == "plain"


def memo_excerpts(memos: List[str]) -> Tuple[str, ...]:
    excerpts = []
    for memo in memos:
        text = (memo or "").strip()
        if not text:
            continue
        if len(text) > MAX_MEMO_EXCERPT_CHARS:
            text = text[:MAX_MEMO_EXCERPT_CHARS].rstrip() + "..."
        excerpts.append(text)
    return tuple(excerpts)


def render_theme_block(ctx: PromptContext, memo_heading: str) -> str:
    lines = [f"Title: {ctx.theme_title}"]
    if ctx.theme_description:
        lines.append(f"Description: {ctx.theme_description}")
    block = "\n".join(lines)
    if ctx.memos:
        numbered = "\n".join(f"{i}. {m}" for i, m in enumerate(ctx.memos, start=1))
        block += f"\n\n{memo_heading}:\n{numbered}"
    return block
