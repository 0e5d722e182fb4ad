# notewright/core/normalizer.py

import re
from dataclasses import dataclass
from typing import List, Tuple

from notewright.core.errors import LeakWarning
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

# Template labels that sometimes leak into generated prose. Matching lines
# are dropped whole.
LEAK_LABELS = (
    "title",
    "tone",
    "structure",
    "style",
    "writing style",
    "pronoun",
    "target length",
    "word count",
    "character count",
    "format",
    "audience",
    "outline",
    r"body paragraph(?:\s*\d+)?",
    r"section(?:\s*\d+)?",
)

_LEAK_RE = re.compile(
    r"^\s*(?:[#>*\-]+\s*)?(?:\*\*)?\s*(?:" + "|".join(LEAK_LABELS) + r")\s*(?:\*\*)?\s*[:：]",
    re.IGNORECASE,
)

_H1_RE = re.compile(r"^#\s*")
_H2_RE = re.compile(r"^##\s*")


@dataclass(frozen=True)
class NormalizedArticle:
    title: str
    body: str
    dropped_lines: int = 0


def is_leak_line(line: str) -> bool:
    return bool(_LEAK_RE.match(line))


def strip_meta_leaks(raw: str) -> Tuple[str, int]:
    """Remove leaked template label lines. Returns (cleaned_text, dropped_count)."""
    kept: List[str] = []
    dropped = 0
    for line in (raw or "").split("\n"):
        if is_leak_line(line):
            dropped += 1
            continue
        kept.append(line)

    if dropped:
        warning = LeakWarning(dropped)
        logger.warning("[normalize] %s", warning)
    return "\n".join(kept), dropped


def strip_reference_echo(text: str, reference: str, source: str = "", min_chars: int = 20) -> Tuple[str, int]:
    """
    Drop output lines copied verbatim from a style reference sample.
    Lines that also occur in the source article are kept.
    """
    ref_lines = {ln.strip() for ln in (reference or "").split("\n") if len(ln.strip()) >= min_chars}
    if not ref_lines:
        return text, 0
    src_lines = {ln.strip() for ln in (source or "").split("\n")}

    kept: List[str] = []
    dropped = 0
    for line in (text or "").split("\n"):
        s = line.strip()
        if s in ref_lines and s not in src_lines:
            dropped += 1
            continue
        kept.append(line)

    if dropped:
        logger.warning("[normalize] dropped %d line(s) copied from the style reference", dropped)
    return "\n".join(kept), dropped


def split_title(text: str, fallback_title: str) -> Tuple[str, str]:
    """
    Use a leading '# ' or '## ' line as the title; otherwise keep the
    fallback title and the whole text as body.
    """
    stripped = (text or "").strip()
    lines = stripped.split("\n")
    first = lines[0]

    if first.startswith("# "):
        title = _H1_RE.sub("", first).strip()
    elif first.startswith("## "):
        title = _H2_RE.sub("", first).strip()
    else:
        return fallback_title, stripped

    body = "\n".join(lines[1:]).strip()
    return (title or fallback_title), body


def normalize(raw: str, fallback_title: str) -> NormalizedArticle:
    cleaned, dropped = strip_meta_leaks(raw)
    title, body = split_title(cleaned, fallback_title)
    return NormalizedArticle(title=title, body=body, dropped_lines=dropped)
