"""Exception hierarchy for the Mara X exporter.

Every failure raised by the line reader or the status decoder derives from
:class:`MaraXError`, so the scrape path can catch a single type and decide
whether to log, skip or abort.
"""

from __future__ import annotations


class MaraXError(Exception):
    """Base exception for the exporter."""


class ReadError(MaraXError):
    """No usable record could be read from the serial stream."""


class ReadTimeout(ReadError, TimeoutError):
    """No complete line arrived before the read deadline.

    Recoverable: the next scrape simply tries again.
    """


class StreamError(ReadError):
    """The serial stream failed, closed, or produced unframeable data.

    Raised for:
      - end-of-stream before a line was complete
      - OS-level errors on the device
      - more than ``MAX_LINE_BYTES`` buffered without a newline
      - failure to open the serial device
    """


class DecodeError(MaraXError, ValueError):
    """A line was read but is not a valid status record."""

    def __init__(self, message: str, line: str) -> None:
        super().__init__(message)
        self.line = line


class StructuralError(DecodeError):
    """Wrong field count, or the mode/version token is too short."""


class NumericParseError(DecodeError):
    """A numeric or boolean field could not be parsed.

    Attributes:
        field: Name of the offending status field.
        value: The raw text of that field.
    """

    def __init__(self, message: str, line: str, field: str, value: str) -> None:
        super().__init__(message, line)
        self.field = field
        self.value = value


__all__ = [
    "MaraXError",
    "ReadError",
    "ReadTimeout",
    "StreamError",
    "DecodeError",
    "StructuralError",
    "NumericParseError",
]
