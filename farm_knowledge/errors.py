# farm_knowledge/errors.py
"""
Error kinds raised by the engine.

Every error carries a stable ``kind`` and a message that has already been
stripped of connection strings, keys and tokens, so callers can show it or
log it without leaking secrets.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SENSITIVE_FIELDS = ("password", "token", "key", "secret", "credential", "authorization")

_SENSITIVE_PATTERNS = [
    (re.compile(r"(mongodb(?:\+srv)?|postgresql|mysql)://[^@/\s]+@", re.IGNORECASE), r"\1://***@"),
    (re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"AIza[0-9A-Za-z_-]{35}"), "***"),
    (re.compile(r"sk-[A-Za-z0-9_-]{20,}"), "***"),
    (re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"), "***"),
    # Record and knowledge ids stay below this length.
    (re.compile(r"['\"]?[A-Za-z0-9_-]{48,}['\"]?"), "***"),
]


def sanitize_message(text: Any) -> str:
    """Masks credentials, keys and tokens in free text."""
    message = str(text) if text is not None else ""
    if not message:
        return "Unknown error occurred"

    for pattern, replacement in _SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)

    for field in SENSITIVE_FIELDS:
        message = re.sub(rf"\"{field}\"\s*:\s*\"[^\"]+\"", f"{field}=***", message, flags=re.IGNORECASE)
        message = re.sub(rf"'{field}'\s*:\s*'[^']+'", f"{field}=***", message, flags=re.IGNORECASE)
        message = re.sub(rf"{field}\s*[=:]\s*[^\s&,;]+", f"{field}=***", message, flags=re.IGNORECASE)
    return message


def sanitize_context(context: Dict[str, Any]) -> Dict[str, Any]:
    """Masks sensitive keys and truncates long values in a logging context."""
    sanitized = {}
    for key, value in context.items():
        if any(field in key.lower() for field in SENSITIVE_FIELDS):
            sanitized[key] = "***"
        elif isinstance(value, str):
            value = sanitize_message(value) if value else value
            sanitized[key] = value[:200] + "..." if len(value) > 200 else value
        else:
            sanitized[key] = value
    return sanitized


class EngineError(Exception):
    """Base class for all engine errors."""
    kind = "engine_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = sanitize_message(message)
        self.details = sanitize_context(details or {})
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class IndexUnavailable(EngineError):
    """The store has no index for the requested query. Recoverable: triggers fallback."""
    kind = "index_unavailable"


class UpstreamUnavailable(EngineError):
    """Embedding service or vector index unavailable. Recoverable: empty vector results."""
    kind = "upstream_unavailable"


class NotFound(EngineError):
    kind = "not_found"


class PersistenceFailure(EngineError):
    """A write to the store failed. Fatal for the calling operation."""
    kind = "persistence_failure"


class StoreFailure(EngineError):
    """A read from the store failed for a reason other than a missing index."""
    kind = "store_failure"


class InvalidInput(EngineError):
    kind = "invalid_input"


def log_error(error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """Prints a sanitized one-line error report."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "kind": getattr(error, "kind", type(error).__name__),
        "message": getattr(error, "message", None) or sanitize_message(error),
    }
    if context:
        entry["context"] = sanitize_context(context)
    print(f"---ENGINE ERROR: {json.dumps(entry, default=str, ensure_ascii=False)}---")
