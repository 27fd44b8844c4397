from __future__ import annotations

from contextvars import ContextVar, Token
from datetime import datetime, timezone
import json
import logging
import re
from typing import Any, Mapping
from uuid import uuid4


REQUEST_ID_CONTEXT: ContextVar[str] = ContextVar("request_id", default="-")
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")
HANDLER_MARKER = "_deliverables_handler"

# Keys whose values never reach a log line: storage credentials, download links, student contact.
SENSITIVE_KEY_FRAGMENTS = ("token", "secret", "signature", "signed_url", "access_key", "email")

REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"), "[REDACTED_AWS_ACCESS_KEY]"),
    (re.compile(r"local-signed://[A-Za-z0-9-]+"), "local-signed://[REDACTED]"),
    (re.compile(r"(?i)(X-Amz-(?:Signature|Credential|Security-Token)=)[^&\s]+"), r"\1[REDACTED]"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[REDACTED_EMAIL]"),
)


def normalize_request_id(candidate: str | None) -> str:
    if candidate:
        trimmed = candidate.strip()
        if REQUEST_ID_PATTERN.fullmatch(trimmed):
            return trimmed
    return str(uuid4())


def set_request_id(request_id: str) -> Token[str]:
    return REQUEST_ID_CONTEXT.set(request_id)


def reset_request_id(token: Token[str]) -> None:
    REQUEST_ID_CONTEXT.reset(token)


def get_request_id() -> str:
    return REQUEST_ID_CONTEXT.get()


def _looks_sensitive_key(key: str) -> bool:
    normalized = key.strip().lower().replace("-", "_")
    return any(fragment in normalized for fragment in SENSITIVE_KEY_FRAGMENTS)


def _redact_string(value: str, *, max_length: int) -> str:
    for pattern, replacement in REDACTIONS:
        value = pattern.sub(replacement, value)
    if len(value) > max_length:
        return f"{value[:max_length]}...[truncated]"
    return value


def sanitize_for_logging(value: Any, *, max_string_length: int = 240) -> Any:
    """Redact credentials and signed download links before a value reaches a log line.

    Raw bytes (rendered artifacts, uploads) are summarised by length only.
    """
    if isinstance(value, Mapping):
        return {
            str(key): "[REDACTED]"
            if _looks_sensitive_key(str(key))
            else sanitize_for_logging(item, max_string_length=max_string_length)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_for_logging(item, max_string_length=max_string_length) for item in value]
    if isinstance(value, bytes):
        return f"[{len(value)} bytes]"
    if isinstance(value, str):
        return _redact_string(value, max_length=max_string_length)
    return value


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    _STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
        "message",
        "asctime",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", get_request_id()),
        }
        payload.update(
            (key, sanitize_for_logging(value))
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS and key not in payload
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(level_name: str) -> None:
    """Install one JSON handler on the root logger; later calls only adjust the level."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    if any(getattr(handler, HANDLER_MARKER, False) for handler in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())
    setattr(handler, HANDLER_MARKER, True)
    root.addHandler(handler)
