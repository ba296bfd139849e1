"""Structured logging for the admission layer.

Decision logs must let operators correlate traffic per caller without
the logs ever holding a caller's identity. Record fields therefore go
through two policies before they are written:

- credentials (auth headers, API keys, the store URL) are replaced by
  ``[REDACTED]``;
- identities and counter keys (which embed the identity) are replaced by a
  truncated SHA-256 digest, so one caller's lines still group together.

The request id set by the request-id middleware is attached to every
record emitted while the request is in flight.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from limiter.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "x-api-key",
        "api_key",
        "token",
        "password",
        "secret",
        "cookie",
        "set-cookie",
        "redis_url",
    }
)

IDENTITY_KEYS: frozenset[str] = frozenset({"identity", "counter_key", "x-user-id"})

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)


def hash_identity(identity: str) -> str:
    """Digest an identity (or a key embedding one) for logging."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


class FieldScrubber:
    """Applies the credential and identity policies to structured fields.

    Matching is case-insensitive on field names and recurses into nested
    mappings and sequences (e.g. a logged headers dict).
    """

    def __init__(
        self,
        credential_keys: Iterable[str] = CREDENTIAL_KEYS,
        identity_keys: Iterable[str] = IDENTITY_KEYS,
    ) -> None:
        self.credential_keys = {k.lower() for k in credential_keys}
        self.identity_keys = {k.lower() for k in identity_keys}

    def scrub_field(self, name: str, value: Any) -> Any:
        lowered = name.lower()
        if lowered in self.credential_keys:
            return REDACTED
        if lowered in self.identity_keys and value is not None:
            return hash_identity(str(value))
        return self.scrub_value(value)

    def scrub_value(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {k: self.scrub_field(str(k), v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.scrub_value(v) for v in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields with both policies applied.

        Records already scrubbed by ``RedactionFilter`` are returned as is, so
        identities are digested once.
        """
        already_scrubbed = getattr(record, "_scrubbed", False)
        return {
            name: value if already_scrubbed else self.scrub_field(name, value)
            for name, value in vars(record).items()
            if name not in _RECORD_ATTRS and not name.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Attach the in-flight request id unless the record already has one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class RedactionFilter(logging.Filter):
    """Scrub ``extra`` fields in place so every formatter sees safe values."""

    def __init__(self, scrubber: FieldScrubber | None = None) -> None:
        super().__init__()
        self.scrubber = scrubber or FieldScrubber()

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for name, value in self.scrubber.extras(record).items():
            setattr(record, name, value)
        record._scrubbed = True
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: envelope fields first, then extras."""

    def __init__(self, scrubber: FieldScrubber | None = None, *, ensure_ascii: bool = True) -> None:
        super().__init__()
        self.scrubber = scrubber or FieldScrubber()
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(self.scrubber.extras(record))
        if payload.get("request_id") is None:
            payload.pop("request_id", None)
            if get_request_id():
                payload["request_id"] = get_request_id()
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _open_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(log_settings.file_path or "logs/limiter.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(path, encoding="utf-8")
    return RotatingFileHandler(
        path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> logging.Handler:
    """Install a single scrubbed handler on the root logger.

    Args:
        log_settings: Logging settings; the global settings when omitted.

    Returns:
        The installed handler.
    """
    cfg = log_settings or settings.log
    scrubber = FieldScrubber()

    handler = _open_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(RedactionFilter(scrubber))
    if cfg.format == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter(scrubber))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
    return handler
