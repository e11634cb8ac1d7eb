"""Error taxonomy & redaction.

Every failure a command can hit falls in one of three buckets:

- ``FatalSetupError``: missing token, rejected credentials, unresolvable
  repository, unreadable config. The command aborts before producing output.
- ``FetchError``: a page of the snapshot could not be retrieved. The command
  aborts before planning so no partial snapshot is ever planned against.
- ``ApplyError``: a single mutation failed. Recorded, counted and skipped;
  the remaining entries of the plan still run.

Nothing here retries. ``classify_error`` only enriches log records.

Public API:
- redact(text) -> str
- classify_error(exc) -> ErrorInfo
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gho_[A-Za-z0-9]{20,40}"),  # gh CLI OAuth tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"Bearer\s+[A-Za-z0-9_\-\.]{8,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class TrackerOpsError(RuntimeError):
    """Base class for errors surfaced to the operator."""


class FatalSetupError(TrackerOpsError):
    """Setup could not complete (dependency, auth, repository, config)."""


class FetchError(TrackerOpsError):
    """A snapshot page request failed; the whole run is aborted."""

    def __init__(self, message: str, *, page: int | None = None, status: int | None = None):
        super().__init__(message)
        self.page = page
        self.status = status


class ApplyError(TrackerOpsError):
    """A single planned mutation failed; callers count it and continue."""

    def __init__(self, message: str, *, target: str | int | None = None):
        super().__init__(message)
        self.target = target


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception for log enrichment.

    - rate limit wording -> 'github.rate_limit'
    - abuse detection -> 'github.abuse'
    - HTTP 401/403 or credential wording -> 'auth'
    - network keywords -> 'network'
    - YAML / parse errors -> 'parse'
    - fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    status = getattr(exc, "status", None)
    name = exc.__class__.__name__

    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name)
    if "abuse" in low:
        return ErrorInfo("github.abuse", redact(msg), name)
    if status in (401, 403) or "bad credentials" in low:
        return ErrorInfo("auth", redact(msg), name, details={"status": status})
    if any(k in low for k in ("timeout", "timed out", "connection", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name)
    if any(k in low for k in ("yaml", "scannererror", "parsererror")):
        return ErrorInfo("parse", redact(msg), name)
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "ApplyError",
    "ErrorInfo",
    "FatalSetupError",
    "FetchError",
    "TrackerOpsError",
    "classify_error",
    "redact",
]
