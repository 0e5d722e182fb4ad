# notewright/core/errors.py
"""
Error taxonomy shared by the core and the API layer.

Everything fatal derives from NotewrightError (a RuntimeError, the same
outward type the rest of the code base raises), so callers that only care
about "did it work" can catch one class. The API maps each subclass to a
status code in notewright.api.server.
"""

from typing import Optional


class NotewrightError(RuntimeError):
    """Base class for caller-visible failures."""


class ValidationError(NotewrightError, ValueError):
    """Malformed caller input. Raised before any external call."""


class AuthRequired(NotewrightError):
    """No acting user. Raised before any state mutation."""


class NotFound(NotewrightError):
    """Record missing, or not owned by the acting user."""


class InvalidTransition(NotewrightError):
    """Operation not allowed in the interview's current state."""


class StaleWrite(NotewrightError):
    """Article changed underneath an edit (revision token mismatch)."""


class StoreUnavailable(NotewrightError):
    """Persistence layer unreachable or failing. Not retried."""


class RateLimited(NotewrightError):
    """Generation provider throttled the request. Retried by the engine."""

    def __init__(self, message: str = "rate limited", retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ProviderError(NotewrightError):
    """Non-throttling failure reported by the generation provider."""

    def __init__(self, message: str, code: str = "unknown") -> None:
        super().__init__(message)
        self.code = code


class GenerationFailed(NotewrightError):
    """No usable generation output after the retry budget."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class RegistryInconsistent(NotewrightError):
    """A category's current pointer names a version that does not exist."""


class LeakWarning(UserWarning):
    """Normalizer dropped meta-instruction lines. Logged, never raised."""

    def __init__(self, dropped_lines: int) -> None:
        super().__init__(f"dropped {dropped_lines} leaked meta line(s)")
        self.dropped_lines = dropped_lines
