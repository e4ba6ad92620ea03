"""Mara X serial status protocol."""

from .status import Mode, StatusSnapshot, decode_status_line

__all__ = [
    "Mode",
    "StatusSnapshot",
    "decode_status_line",
]
