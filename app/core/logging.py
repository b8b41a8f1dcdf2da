"""Structured logging for the rental API.

- ``request_id`` is carried in a contextvar and stamped on every record
- ``SensitiveDataFilter`` hides credentials before any handler formats them:
  whole fields (``authorization``, ``password``, ``otp``, ``rate_key`` ...) and
  bearer tokens embedded in free-text values such as error messages
- ``LOG_MASKING=false`` turns redaction off for local debugging
- output goes to stdout, to a daily-rotated file under ``LOG_DIRECTORY``, or both
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

# Field names whose values never reach a log sink. ``rate_key`` holds the raw
# limiter identity, which embeds the caller's Authorization header.
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "token",
        "access_token",
        "refresh_token",
        "jwt_secret",
        "password",
        "new_password",
        "otp",
        "cookie",
        "set-cookie",
        "rate_key",
    }
)

_BEARER_PATTERN = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/=-]+")

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def mask_bearer_tokens(text: str) -> str:
    """Replace the credential part of ``Bearer <token>`` occurrences."""
    return _BEARER_PATTERN.sub(lambda m: f"{m.group(1)} {REDACTED}", text)


def redact(value: Any, sensitive_keys: frozenset[str] = SENSITIVE_KEYS_DEFAULT) -> Any:
    """Return ``value`` with sensitive mapping entries and bearer tokens hidden."""
    if isinstance(value, str):
        return mask_bearer_tokens(value)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else redact(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v, sensitive_keys) for v in value)
    return value


def record_extras(record: LogRecord) -> dict[str, Any]:
    """Fields passed via ``extra=`` (public ones only)."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact credentials on the record in place, before formatting.

    Args:
        sensitive_keys: Field names to blank out entirely.
        enabled: When False the filter passes records through untouched.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None, *, enabled: bool = True) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))
        self.enabled = enabled

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if not self.enabled:
            return True
        for key, value in record_extras(record).items():
            if key.lower() in self.sensitive_keys:
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, redact(value, self.sensitive_keys))
        if isinstance(record.msg, str):
            record.msg = mask_bearer_tokens(record.msg)
        return True


def _iso_utc(created: float) -> str:
    """Millisecond ISO-8601 UTC timestamp with a ``Z`` suffix."""
    stamp = datetime.fromtimestamp(created, tz=timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": _iso_utc(record.created),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(record_extras(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def build_handlers(log_settings: LogSettings) -> list[logging.Handler]:
    """Create handlers for ``LOG_OUTPUT`` (stdout, file or both)."""

    output = log_settings.output.lower()
    handlers: list[logging.Handler] = []
    if output in ("stdout", "both"):
        handlers.append(logging.StreamHandler(sys.stdout))
    if output in ("file", "both"):
        directory = Path(log_settings.directory)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(
            TimedRotatingFileHandler(
                directory / "app.log",
                when="midnight",
                backupCount=log_settings.retention_days,
                encoding="utf-8",
                utc=True,
            )
        )
    return handlers or [logging.StreamHandler(sys.stdout)]


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the configured handlers on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    if cfg.format.lower() == "plain":
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = JsonFormatter()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in build_handlers(cfg):
        handler.addFilter(RequestIdFilter())
        handler.addFilter(SensitiveDataFilter(enabled=cfg.masking))
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
