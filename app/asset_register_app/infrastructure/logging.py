"""Process logging for the asset register service.

Modules take their logger from ``get_logger`` and attach structured context
with ``extra={"event": ..., ...}``. Context keys that would collide with
``LogRecord`` attributes (``created``, ``module``, ``name`` ...) are moved
under an ``<key>_field`` name instead of making ``makeRecord`` raise.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping

from asset_register_app.core.env import (
    ASSETREG_LOG_CAPTURE_ROOT,
    ASSETREG_LOG_JSON,
    ASSETREG_LOG_LEVEL,
    get_env,
    get_env_bool,
)

APP_LOGGER_NAME = "asset_register_app"
PLAIN_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(event)s] %(message)s"

_LOGGING_CONFIGURED = False
_RESERVED_LOG_RECORD_FIELDS = frozenset(
    logging.LogRecord(APP_LOGGER_NAME, logging.INFO, __file__, 0, "", (), None).__dict__
) | {"message", "asctime"}


def namespaced_extra(fields: MutableMapping[str, Any] | None) -> dict[str, Any]:
    """Copy ``fields`` with reserved ``LogRecord`` names renamed to ``<key>_field``."""
    cleaned: dict[str, Any] = {}
    for key, value in (fields or {}).items():
        name = str(key)
        if name in _RESERVED_LOG_RECORD_FIELDS:
            name = f"{name}_field"
        cleaned[name] = value
    return cleaned


class EventLoggerAdapter(logging.LoggerAdapter):
    """Merges adapter context with per-call ``extra`` and guards reserved keys."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        merged = dict(self.extra or {})
        merged.update(kwargs.get("extra") or {})
        kwargs["extra"] = namespaced_extra(merged)
        return msg, kwargs


def get_logger(name: str, **context: Any) -> EventLoggerAdapter:
    return EventLoggerAdapter(logging.getLogger(name), context)


class _EventDefaultFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "event"):
            record.event = "-"
        return True


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_FIELDS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def setup_app_logging() -> None:
    global _LOGGING_CONFIGURED  # pylint: disable=global-statement
    if _LOGGING_CONFIGURED:
        return

    level_name = get_env(ASSETREG_LOG_LEVEL, "INFO").upper() or "INFO"
    level = getattr(logging, level_name, logging.INFO)
    use_json = get_env_bool(ASSETREG_LOG_JSON, default=False)
    capture_root = get_env_bool(ASSETREG_LOG_CAPTURE_ROOT, default=False)

    formatter: logging.Formatter = _JsonFormatter() if use_json else logging.Formatter(PLAIN_LOG_FORMAT)
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(_EventDefaultFilter())

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    app_logger.setLevel(level)
    app_logger.propagate = False

    if capture_root:
        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(handler)
        root.setLevel(level)

    get_logger(__name__).info(
        "Logging configured. level=%s json=%s capture_root=%s",
        level_name,
        str(use_json).lower(),
        str(capture_root).lower(),
        extra={"event": "logging_configured"},
    )
    _LOGGING_CONFIGURED = True
