# notewright/memory/models.py

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ISO_FMT = "%Y-%m-%dT%H:%M:%S.%fZ"

INTERVIEW_ACTIVE = "active"
INTERVIEW_COMPLETED = "completed"

ROLE_ASSISTANT = "assistant"
ROLE_USER = "user"


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime(ISO_FMT)


def count_words(content: str) -> int:
    # word_count is the character length of the body, always derived here.
    return len(content or "")


@dataclass
class Theme:
    id: int
    user_id: str
    title: str
    description: str
    created_at: str
    updated_at: str


@dataclass
class Memo:
    id: int
    theme_id: int
    user_id: str
    content: str
    created_at: str


@dataclass
class Interview:
    id: int
    theme_id: int
    user_id: str
    target_length: int
    status: str          # 'active' or 'completed'
    created_at: str
    updated_at: str

    @property
    def is_active(self) -> bool:
        return self.status == INTERVIEW_ACTIVE


@dataclass
class InterviewMessage:
    id: int
    interview_id: int
    role: str            # 'assistant' or 'user'
    content: str
    created_at: str

    def as_chat(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class Article:
    id: int
    theme_id: int
    interview_id: Optional[int]
    user_id: str
    title: str
    content: str
    word_count: int
    revision: int
    created_at: str
    updated_at: str


@dataclass
class ArticleEditHistory:
    id: int
    article_id: int
    user_id: str
    title: str
    content: str
    word_count: int
    edit_label: str
    created_at: str


@dataclass
class StyleReference:
    id: int
    user_id: str
    label: str
    source_text: str
    is_default: bool
    created_at: str
    updated_at: str


@dataclass
class ThemeArticleRef:
    id: int
    theme_id: int
    article_id: int
    user_id: str
    created_at: str
    article_title: str = ""
    article_content: str = ""
