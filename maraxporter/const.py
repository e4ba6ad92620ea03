"""Shared constants for the Mara X exporter."""
from __future__ import annotations

from typing import Final

DEFAULT_SERIAL_DEVICE: Final[str] = "/dev/serial0"
DEFAULT_SERIAL_BAUD: Final[int] = 9600
DEFAULT_METRICS_HOST: Final[str] = "0.0.0.0"
DEFAULT_METRICS_PORT: Final[int] = 8080
DEFAULT_READ_TIMEOUT: Final[float] = 1.0
DEFAULT_DEBUG_LOGGING: Final[bool] = False
DEFAULT_SYSLOG: Final[bool] = False

# Mara X UART framing: 8N1.
SERIAL_BYTESIZE: Final[int] = 8
SERIAL_PARITY: Final[str] = "N"
SERIAL_STOPBITS: Final[int] = 1

LINE_TERMINATOR: Final[bytes] = b"\n"
# A status record is ~25 bytes; anything this long without a newline is noise.
MAX_LINE_BYTES: Final[int] = 1024

FIELD_SEPARATOR: Final[str] = ","
FIELD_COUNT: Final[int] = 6
STEAM_MODE_TAG: Final[str] = "V"
UINT16_MAX: Final[int] = 0xFFFF

SUPERVISOR_MAX_RESTARTS: Final[int] = 5
SUPERVISOR_MIN_BACKOFF: Final[float] = 1.0
SUPERVISOR_MAX_BACKOFF: Final[float] = 30.0

__all__ = [
    "DEFAULT_SERIAL_DEVICE",
    "DEFAULT_SERIAL_BAUD",
    "DEFAULT_METRICS_HOST",
    "DEFAULT_METRICS_PORT",
    "DEFAULT_READ_TIMEOUT",
    "DEFAULT_DEBUG_LOGGING",
    "DEFAULT_SYSLOG",
    "SERIAL_BYTESIZE",
    "SERIAL_PARITY",
    "SERIAL_STOPBITS",
    "LINE_TERMINATOR",
    "MAX_LINE_BYTES",
    "FIELD_SEPARATOR",
    "FIELD_COUNT",
    "STEAM_MODE_TAG",
    "UINT16_MAX",
    "SUPERVISOR_MAX_RESTARTS",
    "SUPERVISOR_MIN_BACKOFF",
    "SUPERVISOR_MAX_BACKOFF",
]
