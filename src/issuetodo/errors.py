"""Error taxonomy & redaction for issuetodo.

Every failure that reaches the session error surface is one of the classes
below. Relationship reads that come back 404/204 are *not* errors; the
relationship manager converts them to empty results before anything here is
involved.

Public API:
- PreconditionError / TransportError / DecodeError / ValidationError / ConfigError
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"gh[pousr]_[A-Za-z0-9]{20,40}"),  # classic PAT, OAuth, app tokens
    re.compile(r"github_pat_\w{20,}"),  # fine-grained tokens
    re.compile(r"(?i)bearer\s+[A-Za-z0-9_\-\.]{8,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class IssueTodoError(RuntimeError):
    """Base class for every error raised by issuetodo."""


class PreconditionError(IssueTodoError):
    """The caller invoked an operation whose preconditions do not hold.

    Raised for a missing credential or a missing repository selection; no
    network request is made.
    """


class TransportError(IssueTodoError):
    """Raised when the GitHub REST API is unreachable or answers >= 400."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


class DecodeError(IssueTodoError):
    """The server answered, but the payload is not what we expected."""


class ValidationError(IssueTodoError, ValueError):
    """Unusable user input, rejected before any network call."""


class ConfigError(IssueTodoError):
    pass


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Redact credentials in arbitrary text before it is shown or logged."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - PreconditionError -> 'precondition'
    - ValidationError -> 'validation'
    - DecodeError -> 'decode'
    - TransportError: rate limit -> 'github.rate_limit' (transient),
      401/403 -> 'github.auth', 404 -> 'github.not_found', else 'transport'
    - Network-y keywords -> 'network' (transient)
    - Fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, PreconditionError):
        return ErrorInfo("precondition", redact(msg), name)
    if isinstance(exc, ValidationError):
        return ErrorInfo("validation", redact(msg), name)
    if isinstance(exc, DecodeError):
        return ErrorInfo("decode", redact(msg), name)
    if isinstance(exc, TransportError):
        body = (exc.response_text or "").lower()
        details = {"status": exc.status} if exc.status is not None else None
        if "rate limit" in low or "rate limit" in body:
            return ErrorInfo("github.rate_limit", redact(msg), name, True, details)
        if exc.status in (401, 403):
            return ErrorInfo("github.auth", redact(msg), name, details=details)
        if exc.status == 404:
            return ErrorInfo("github.not_found", redact(msg), name, details=details)
        transient = exc.status is None or exc.status >= 500
        return ErrorInfo("transport", redact(msg), name, transient, details)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "IssueTodoError",
    "PreconditionError",
    "TransportError",
    "DecodeError",
    "ValidationError",
    "ConfigError",
    "ErrorInfo",
    "classify_error",
    "redact",
]
