# notewright/clients/openai_client.py
#
# Single integration layer for the OpenAI chat API.
# Retrying is NOT done here: the generation engine owns the attempt budget,
# so the SDK's own retries are disabled and throttling is surfaced as
# RateLimited for the engine to act on.

import random
import time
from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

from notewright.config.settings import Settings
from notewright.core.errors import ProviderError, RateLimited
from notewright.core.generation import GenerationRequest
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.openai.com"

# Per-purpose sampling temperature. Interview questions benefit from a
# little variety; rewrites should stay close to the source.
_TEMPERATURES = {
    "interview": 0.6,
    "writing": 0.7,
    "rewrite": 0.4,
}


# ---------------------------------------------------------------------------
# Base URL normalization
# ---------------------------------------------------------------------------

def _strip_outer_quotes(s: str) -> str:
    """
    Users sometimes put OPENAI_BASE_URL="https://..." including quotes.
    This removes a single pair of matching outer quotes.
    """
    s2 = (s or "").strip()
    if len(s2) >= 2 and ((s2[0] == s2[-1]) and s2[0] in ("'", '"')):
        return s2[1:-1].strip()
    return s2


def normalize_api_base(raw: Optional[str]) -> str:
    """
    Ensures the base URL ends with /v1.
    Full endpoint URLs (.../v1/chat/completions) are trimmed back to /v1.
    """
    base = _strip_outer_quotes((raw or DEFAULT_API_BASE).strip())

    if not (base.startswith("http://") or base.startswith("https://")):
        raise RuntimeError(f"OPENAI_BASE_URL is invalid (missing scheme): {base!r}")

    base = base.rstrip("/")

    if "/v1/" in base:
        return base.split("/v1/")[0] + "/v1"
    if base.endswith("/v1"):
        return base
    return base + "/v1"


# ---------------------------------------------------------------------------
# Diagnostics + error classification
# ---------------------------------------------------------------------------

def _mk_req_id(prefix: str = "req") -> str:
    return f"{prefix}_{int(time.time()*1000)}_{random.randint(1000, 9999)}"


def classify_openai_error(e: Exception) -> str:
    if isinstance(e, openai.RateLimitError):
        return "openai_rate_limit"
    if isinstance(e, openai.AuthenticationError):
        return "openai_auth"
    if isinstance(e, openai.APITimeoutError):
        return "openai_timeout"
    if isinstance(e, openai.NotFoundError):
        return "openai_404_not_found"

    name = e.__class__.__name__
    msg = (str(e) or "").lower()

    if "notfound" in name.lower() or "404" in msg:
        return "openai_404_not_found"
    if "401" in msg or "incorrect api key" in msg or "authentication" in msg:
        return "openai_auth"
    if "429" in msg or "rate limit" in msg:
        return "openai_rate_limit"
    if "timeout" in msg or "timed out" in msg:
        return "openai_timeout"
    if "502" in msg or "bad gateway" in msg:
        return "openai_502"
    if "503" in msg or "service unavailable" in msg:
        return "openai_503"
    if "connection" in msg or "dns" in msg:
        return "openai_network"

    return "openai_unknown"


def _retry_after_seconds(e: Exception) -> Optional[float]:
    response = getattr(e, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after")
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class OpenAIGenerator:
    """TextGenerator backed by the OpenAI chat completions API."""

    name = "openai"

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        if not settings.openai_api_key:
            raise RuntimeError("OpenAIGenerator requires OPENAI_API_KEY; use OfflineGenerator instead.")

        self.model = (settings.openai_model or "").strip() or "gpt-4.1-mini"
        self.api_base = normalize_api_base(settings.openai_base_url)
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=self.api_base,
            timeout=settings.openai_timeout_seconds,
            max_retries=0,
        )
        logger.info("OpenAI api_base resolved to: %s model=%s", self.api_base, self.model)

    def _build_messages(self, request: GenerationRequest) -> List[Dict[str, str]]:
        for i, m in enumerate(request.messages):
            if not isinstance(m, dict) or "role" not in m or "content" not in m:
                raise ProviderError(f"invalid message at index {i}: {m!r}", code="bad_request")
        return [{"role": "system", "content": request.system_prompt}] + [
            {"role": m["role"], "content": m["content"]} for m in request.messages
        ]

    async def generate(self, request: GenerationRequest) -> str:
        req_id = _mk_req_id(request.purpose)
        full_messages = self._build_messages(request)
        logger.info("[%s] req_id=%s start model=%s prompt=%s msg_count=%d",
                    request.purpose, req_id, self.model, request.prompt_version or "-", len(full_messages))

        t0 = time.monotonic()
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=full_messages,
                temperature=_TEMPERATURES.get(request.purpose, 0.5),
            )
        except Exception as e:
            dt_ms = int((time.monotonic() - t0) * 1000)
            code = classify_openai_error(e)
            logger.warning("[%s] req_id=%s FAIL latency_ms=%d code=%s err=%s",
                           request.purpose, req_id, dt_ms, code, str(e))
            if code == "openai_rate_limit":
                raise RateLimited(str(e), retry_after=_retry_after_seconds(e)) from e
            raise ProviderError(str(e), code=code) from e

        dt_ms = int((time.monotonic() - t0) * 1000)
        content = ""
        try:
            content = resp.choices[0].message.content or ""
        except (AttributeError, IndexError):
            content = ""
        content = content.strip()

        snippet = content[:240] + ("..." if len(content) > 240 else "")
        logger.info("[%s] req_id=%s OK latency_ms=%d chars=%d reply=%r",
                    request.purpose, req_id, dt_ms, len(content), snippet)
        return content

    def runtime_config(self) -> Dict[str, str]:
        """Non-secret configuration, for logs and the health endpoint."""
        return {
            "generator": self.name,
            "openai_api_base": self.api_base,
            "openai_model": self.model,
        }
