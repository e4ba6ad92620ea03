"""Transport layer for the Mara X exporter."""

from .serial import SerialReadProtocol, SerialStatusSource, discard_stale_lines, read_line

__all__ = [
    "SerialReadProtocol",
    "SerialStatusSource",
    "discard_stale_lines",
    "read_line",
]
