"""Error taxonomy for the recipe import pipeline."""

import re
from enum import StrEnum
from typing import Any

MAX_ERROR_MESSAGE_LENGTH = 1000


class ErrorCode(StrEnum):
    """Machine-readable error codes surfaced at the service boundary."""

    AUTH_ERROR = "AUTH_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    DB_ERROR = "DB_ERROR"
    AI_PROVIDER_ERROR = "AI_PROVIDER_ERROR"
    AI_EXTRACTION_FAILED = "AI_EXTRACTION_FAILED"
    INVALID_URL = "INVALID_URL"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    DUPLICATE = "DUPLICATE"


class FetchErrorCode(StrEnum):
    """Error codes produced by the secure HTML fetcher."""

    INVALID_URL = "INVALID_URL"
    PRIVATE_ADDRESS = "PRIVATE_ADDRESS"
    ACCESS_DENIED = "ACCESS_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CLIENT_ERROR = "CLIENT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    TOO_MANY_REDIRECTS = "TOO_MANY_REDIRECTS"
    RESPONSE_TOO_LARGE = "RESPONSE_TOO_LARGE"
    UNSUPPORTED_CONTENT_TYPE = "UNSUPPORTED_CONTENT_TYPE"
    FETCH_TIMEOUT = "FETCH_TIMEOUT"
    FETCH_FAILED = "FETCH_FAILED"


class RecipeImportError(Exception):
    """Typed failure of an import operation.

    Every service-level failure is raised as this exception so callers can
    branch on ``code`` instead of parsing message text.
    """

    def __init__(self, code: ErrorCode, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"<RecipeImportError({self.code}: {self.message})>"


class FetchError(Exception):
    """Raised by the HTML fetcher with a stable machine code."""

    def __init__(self, code: FetchErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class ProviderError(Exception):
    """Transport or API failure talking to the extraction provider."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class AiExtractionFailed(Exception):
    """Provider output could not be turned into a usable recipe.

    ``diagnostics`` is only populated when import debugging is enabled and
    never contains recipe content.
    """

    def __init__(self, message: str, diagnostics: dict[str, Any] | None = None):
        super().__init__(message)
        self.diagnostics = diagnostics


FETCH_ERROR_MAPPING: dict[FetchErrorCode, ErrorCode] = {
    FetchErrorCode.INVALID_URL: ErrorCode.INVALID_URL,
    FetchErrorCode.PRIVATE_ADDRESS: ErrorCode.INVALID_URL,
    FetchErrorCode.ACCESS_DENIED: ErrorCode.NETWORK_ERROR,
    FetchErrorCode.NOT_FOUND: ErrorCode.NETWORK_ERROR,
    FetchErrorCode.CLIENT_ERROR: ErrorCode.NETWORK_ERROR,
    FetchErrorCode.SERVER_ERROR: ErrorCode.NETWORK_ERROR,
    FetchErrorCode.TOO_MANY_REDIRECTS: ErrorCode.NETWORK_ERROR,
    FetchErrorCode.FETCH_FAILED: ErrorCode.NETWORK_ERROR,
    FetchErrorCode.FETCH_TIMEOUT: ErrorCode.TIMEOUT,
    FetchErrorCode.UNSUPPORTED_CONTENT_TYPE: ErrorCode.VALIDATION_ERROR,
    FetchErrorCode.RESPONSE_TOO_LARGE: ErrorCode.VALIDATION_ERROR,
}


def from_fetch_error(error: FetchError) -> RecipeImportError:
    """Map a fetcher error onto the import error taxonomy."""
    return RecipeImportError(
        FETCH_ERROR_MAPPING.get(error.code, ErrorCode.NETWORK_ERROR),
        error.message,
        {"fetch_code": str(error.code)},
    )


_SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key)\s*[:=]\s*\S+", re.IGNORECASE),
    re.compile(r"([?&](?:key|token|access_token)=)[^&\s]+", re.IGNORECASE),
    re.compile(r"\b(sk-[A-Za-z0-9_-]{8,})"),
    re.compile(r"\b(AIza[0-9A-Za-z_-]{20,})"),
]


def sanitize_error_message(message: str, max_length: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    """Redact key-shaped substrings and cap the length of an error message."""
    sanitized = _SECRET_PATTERNS[0].sub(r"\1=[REDACTED]", message)
    sanitized = _SECRET_PATTERNS[1].sub(r"\1[REDACTED]", sanitized)
    for pattern in _SECRET_PATTERNS[2:]:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    if len(sanitized) > max_length:
        sanitized = sanitized[: max_length - 3] + "..."
    return sanitized
