# notewright/core/readiness.py
"""
Readiness signal reported by the interview model.

Raw values: 0..80 while the interview progresses, 100 for "ready, with
bonus", -1 (or no marker) for "unknown". The display scale maps raw 80 to
100% and raw 100 to 125%. Unknown stays None and never goes through the
formula.
"""

import math
import re
from typing import Optional, Tuple

from notewright.prompts.interview import READINESS_MARKER_END, READINESS_MARKER_START

RAW_FULL = 80
RAW_BONUS = 100

_MARKER_RE = re.compile(
    re.escape(READINESS_MARKER_START) + r"\s*(-?\d+)\s*" + re.escape(READINESS_MARKER_END)
)

# (upper bound exclusive, label, message)
_STAGES = (
    (25, "intro", "Just getting started"),
    (50, "basics", "The basic facts are coming together"),
    (75, "deepening", "Material is building up"),
    (100, "almost", "Almost enough to write the article"),
)


def rescale(raw: Optional[int]) -> Optional[int]:
    if raw is None or raw < 0:
        return None
    # half-up rounding, so raw 2 -> 3 rather than banker's 2
    return int(math.floor(raw / RAW_FULL * 100 + 0.5))


def progress_percent(display: Optional[int]) -> int:
    """Clamp a display value for a progress bar. Unknown renders as 0."""
    if display is None:
        return 0
    return max(0, min(100, display))


def stage(display: Optional[int]) -> Tuple[str, str]:
    if display is None:
        return "", ""
    for bound, label, message in _STAGES:
        if display < bound:
            return label, message
    return "ready", "Ready to write the article"


def extract(reply: str) -> Tuple[str, Optional[int]]:
    """
    Pull the readiness marker out of a model reply.

    Returns (visible_reply, raw_readiness). The last marker wins; every
    marker is removed from the visible text. Values are clamped into
    [0, 100]; negative values mean unknown.
    """
    matches = list(_MARKER_RE.finditer(reply or ""))
    if not matches:
        return (reply or "").strip(), None

    visible = _MARKER_RE.sub("", reply).strip()
    value = int(matches[-1].group(1))
    if value < 0:
        return visible, None
    return visible, min(value, RAW_BONUS)
