"""
Logging Configuration

Provides:
- JsonFormatter: one JSON object per line, request id attached
- ContextLogger: LoggerAdapter carrying bound context into every record
- setup_logging: YAML dictConfig when a file is present, JSON stdout otherwise
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
import string
import sys
from collections.abc import MutableMapping
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from file_api.config import Settings

ROOT_LOGGER = "file_api"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

_STANDARD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


def get_request_id() -> str | None:
    return _request_id_var.get()


def set_request_id(request_id: str | None) -> Token[str | None]:
    return _request_id_var.set(request_id)


def reset_request_id(token: Token[str | None]) -> None:
    _request_id_var.reset(token)


class JsonFormatter(logging.Formatter):
    """
    JSON line formatter.

    Fields:
      - timestamp: ISO8601 UTC, millisecond precision
      - level, logger, message
      - request_id: from the record or the current request context
      - any ``extra`` fields passed by the caller
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ContextLogger(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that merges its bound context into each record's extra."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> ContextLogger:
        return ContextLogger(self.logger, {**(self.extra or {}), **context})


def get_logger(name: str, **context: Any) -> ContextLogger:
    """Return a context-carrying logger under the ``file_api`` namespace."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return ContextLogger(logging.getLogger(name), context)


def setup_logging(settings: Settings) -> None:
    """
    Load the YAML config with environment substitution, or fall back to a
    JSON stream handler on the package logger.
    """
    config_path = settings.LOG_CONFIG_PATH
    if config_path and os.path.exists(config_path):
        with open(config_path, encoding="utf-8") as f:
            # Supports ${LOG_LEVEL} style placeholders.
            template = string.Template(f.read())

        mapping = os.environ.copy()
        mapping.setdefault("LOG_LEVEL", settings.LOG_LEVEL)
        config = yaml.safe_load(template.safe_substitute(mapping))
        logging.config.dictConfig(config)
        return

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(settings.LOG_LEVEL.upper())
    if not any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
    logger.propagate = False
