from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Any, Iterable, Sequence

from settings import get_settings

# Context attached to ingest log lines through ``extra=``.
INGEST_CONTEXT_KEYS = (
    "sensor_type",
    "device_id",
    "store_name",
    "record_id",
    "reason",
    "status",
    "http_status",
    "fields",
)

_PROJECT_LOGGERS = ("app", "cli", "datastore", "services")

_configured = False


def _render_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(item) for item in value)
    text = str(value)
    if " " in text:
        return repr(text)
    return text


class ContextualFormatter(logging.Formatter):
    """Append ``key=value`` pairs for known context keys to each record.

    Timestamps are rendered in UTC to match the ``Z`` suffix of the format.
    """

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(context_keys or INGEST_CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={_render_value(getattr(record, key))}"
            for key in self._context_keys
            if getattr(record, key, None) is not None
        ]
        if not context:
            return message
        return f"{message} | {' '.join(context)}"


def configure_logging(level: str | int | None = None, force: bool = False) -> None:
    """Install the gateway's log format on the root logger once per process."""
    global _configured
    if _configured and not force:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "context_keys": list(INGEST_CONTEXT_KEYS),
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "contextual",
                }
            },
            "loggers": {
                name: {"level": log_level, "propagate": True}
                for name in _PROJECT_LOGGERS
            },
            "root": {"handlers": ["console"], "level": "WARNING"},
        }
    )

    _configured = True
