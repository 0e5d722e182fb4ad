# notewright/core/validation.py

from typing import Optional

from notewright.core.errors import AuthRequired, ValidationError
from notewright.prompts.context import WRITING_STYLES

THEME_TITLE_MAX = 100
THEME_DESCRIPTION_MAX = 500
MEMO_MAX = 5000
ARTICLE_TITLE_MAX = 200
ARTICLE_CONTENT_MAX = 100000
TARGET_LENGTH_MIN = 100
TARGET_LENGTH_MAX = 50000
ANSWER_MAX = 8000
STYLE_LABEL_MAX = 100
STYLE_TEXT_MAX = 20000

# Older clients send the register under these names.
WRITING_STYLE_ALIASES = {"desu_masu": "polite", "da_dearu": "plain"}


def require_user(user_id: Optional[str]) -> str:
    cleaned = (user_id or "").strip()
    if not cleaned:
        raise AuthRequired("Authentication required.")
    return cleaned


def require_text(value: Optional[str], field: str, max_len: int, min_len: int = 1) -> str:
    text = (value or "").strip()
    if len(text) < min_len:
        raise ValidationError(f"{field} must not be empty.")
    if len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters.")
    return text


def require_target_length(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("target_length must be an integer.")
    if not TARGET_LENGTH_MIN <= value <= TARGET_LENGTH_MAX:
        raise ValidationError(
            f"target_length must be between {TARGET_LENGTH_MIN} and {TARGET_LENGTH_MAX}."
        )
    return value


def require_writing_style(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    style = value.strip().lower()
    style = WRITING_STYLE_ALIASES.get(style, style)
    if style not in WRITING_STYLES:
        raise ValidationError(f"writing_style must be one of {', '.join(WRITING_STYLES)}.")
    return style
