"""Logging setup for the exporter.

Every record is written as one JSON object per line. Values passed through
``extra=`` end up under an ``extra`` key; raw serial bytes are shown as hex
so line noise stays readable.
"""

from __future__ import annotations

import logging
import sys
import time
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any

import msgspec

from .model import RuntimeConfig

SYSLOG_SOCKET = Path("/dev/log")
LOGGER_PREFIX = "maraxporter."

# Attribute names every LogRecord carries; anything else came from ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class LogEntry(msgspec.Struct, omit_defaults=True):
    ts: str
    level: str
    logger: str
    message: str
    extra: dict[str, Any] | None = None
    exception: str | None = None


def _hex_bytes(value: bytes | bytearray) -> str:
    return "[" + value.hex(" ").upper() + "]"


def _extra_fields(record: logging.LogRecord) -> dict[str, Any] | None:
    fields = {
        key: _hex_bytes(value) if isinstance(value, (bytes, bytearray)) else value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }
    return fields or None


class StructuredLogFormatter(logging.Formatter):
    """Render log records as JSON lines."""

    _encoder = msgspec.json.Encoder(enc_hook=str)

    def format(self, record: logging.LogRecord) -> str:
        created = time.gmtime(record.created)
        entry = LogEntry(
            ts=time.strftime("%Y-%m-%dT%H:%M:%S", created) + f".{int(record.msecs):03d}Z",
            level=record.levelname,
            logger=record.name.removeprefix(LOGGER_PREFIX),
            message=record.getMessage(),
            extra=_extra_fields(record),
            exception=self.formatException(record.exc_info) if record.exc_info else None,
        )
        return self._encoder.encode(entry).decode("utf-8")


def _build_handler(use_syslog: bool = False) -> logging.Handler:
    """Log to stderr, or to the local syslog daemon when asked and available."""
    if use_syslog and SYSLOG_SOCKET.exists():
        handler = SysLogHandler(address=str(SYSLOG_SOCKET), facility=SysLogHandler.LOG_DAEMON)
        handler.ident = "maraxporter: "
        return handler
    return logging.StreamHandler(sys.stderr)


def configure_logging(config: RuntimeConfig) -> None:
    """Install the JSON handler on the root logger."""
    level = logging.DEBUG if config.debug_logging else logging.INFO

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": StructuredLogFormatter}},
            "handlers": {
                "output": {
                    "()": _build_handler,
                    "use_syslog": config.syslog,
                    "formatter": "json",
                }
            },
            "root": {"level": level, "handlers": ["output"]},
        }
    )

    logging.getLogger("maraxporter").debug(
        "Logging configured",
        extra={"level": logging.getLevelName(level), "syslog": config.syslog},
    )
