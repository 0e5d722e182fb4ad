# notewright/config/settings.py

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Expose BASE_DIR for other modules
BASE_DIR = Path(__file__).resolve().parents[2]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)


@dataclass
class Settings:
    # Generation provider. No key means the offline stand-in is used.
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4.1-mini"
    openai_base_url: Optional[str] = None
    openai_timeout_seconds: float = 60.0

    # Database path
    db_path: str = str(BASE_DIR / "notewright" / "data" / "notewright.db")

    # Retry policy for generation calls
    generation_max_attempts: int = 3
    retry_base_seconds: float = 2.0

    # Optional prompt version pins (rollback without a code change)
    interview_prompt_version: Optional[str] = None
    writing_prompt_version: Optional[str] = None

    @property
    def offline(self) -> bool:
        return not self.openai_api_key


def _parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
        # safeguard: enforce positive
        return value if value > 0 else default
    except ValueError:
        return default


def _parse_int_env(name: str, default: int, min_val: int = 0, max_val: int = 10) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
        # safeguard: clamp into sane range
        return max(min_val, min(max_val, value))
    except ValueError:
        return default


def _optional_env(name: str) -> Optional[str]:
    raw = os.getenv(name, "").strip()
    return raw or None


def load_settings() -> Settings:
    """
    Load configuration from environment variables (and defaults).
    A missing OPENAI_API_KEY is not an error: generation falls back
    to the deterministic offline generator.
    Also ensures the DB directory exists.
    """
    api_key = _optional_env("OPENAI_API_KEY")

    openai_model = os.getenv("OPENAI_MODEL", "gpt-4.1-mini").strip() or "gpt-4.1-mini"
    base_url = _optional_env("OPENAI_BASE_URL") or _optional_env("OPENAI_API_BASE")

    # --- DB path (optional override) ---
    default_db_path = BASE_DIR / "notewright" / "data" / "notewright.db"
    db_path_env = os.getenv("NOTEWRIGHT_DB_PATH", str(default_db_path)).strip() or str(default_db_path)
    db_path = Path(db_path_env)

    # Ensure data directory exists for DB
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # --- Retry / timeout knobs ---
    timeout_seconds = _parse_float_env("OPENAI_TIMEOUT_SECONDS", 60.0)
    max_attempts = _parse_int_env("NOTEWRIGHT_GENERATION_MAX_ATTEMPTS", 3, min_val=1, max_val=3)
    retry_base = _parse_float_env("NOTEWRIGHT_RETRY_BASE_SECONDS", 2.0)

    return Settings(
        openai_api_key=api_key,
        openai_model=openai_model,
        openai_base_url=base_url,
        openai_timeout_seconds=timeout_seconds,
        db_path=str(db_path),
        generation_max_attempts=max_attempts,
        retry_base_seconds=retry_base,
        interview_prompt_version=_optional_env("NOTEWRIGHT_INTERVIEW_PROMPT"),
        writing_prompt_version=_optional_env("NOTEWRIGHT_WRITING_PROMPT"),
    )
