"""Status record decoding for the Mara X serial UART.

The machine emits one ASCII record per line, roughly once a second:

    <modeTag><version>,<steamTemp>,<steamTargetTemp>,<hxTemp>,<readyCountdown>,<heating>

Example:
    >>> status = decode_status_line(b"C1.23,068,120,054,0820,1\\r\\n")
    >>> status.mode, status.steam_temp
    (<Mode.COFFEE: 'coffee'>, 68)

Decoding is all-or-nothing: either every field validates and a
:class:`StatusSnapshot` is returned, or the first failing step raises.
"""

from __future__ import annotations

import enum
import re
from typing import Final

import msgspec

from ..const import FIELD_COUNT, FIELD_SEPARATOR, STEAM_MODE_TAG, UINT16_MAX
from ..errors import NumericParseError, StructuralError

# Same accepted syntax as a plain base-10 atoi: optional sign, ASCII digits.
_INTEGER_RE: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")

_TRUE_LITERALS: Final[frozenset[str]] = frozenset({"1", "t", "true"})
_FALSE_LITERALS: Final[frozenset[str]] = frozenset({"0", "f", "false"})

# Order matters: it is the order errors are reported in.
_INTEGER_FIELDS: Final[tuple[str, ...]] = (
    "steam_temp",
    "steam_target_temp",
    "hx_temp",
    "ready_countdown",
)


class Mode(enum.StrEnum):
    """Machine priority mode. ``C`` on the wire is coffee, ``V`` (vapour) steam."""

    COFFEE = "coffee"
    STEAM = "steam"


class StatusSnapshot(msgspec.Struct, frozen=True, kw_only=True):
    """One decoded status record.

    Attributes:
        version: Firmware version reported by the machine.
        mode: Coffee or steam priority.
        steam_temp: Current steam boiler temperature.
        steam_target_temp: Temperature the steam boiler is heating towards.
        hx_temp: Current heat exchanger temperature.
        ready_countdown: Fast-heat countdown. Starts around 1500 and reaches
            0 once fast heating is done.
        heating: Whether the heating element is on.
    """

    version: str
    mode: Mode
    steam_temp: int
    steam_target_temp: int
    hx_temp: int
    ready_countdown: int
    heating: bool


def _strip_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


def _parse_uint16(name: str, raw: str, line: str) -> int:
    if _INTEGER_RE.fullmatch(raw) is None:
        raise NumericParseError(
            f"unable to parse {name} {raw!r}: not a base-10 integer",
            line,
            field=name,
            value=raw,
        )
    value = int(raw)
    if not 0 <= value <= UINT16_MAX:
        raise NumericParseError(
            f"unable to parse {name} {raw!r}: outside 0..{UINT16_MAX}",
            line,
            field=name,
            value=raw,
        )
    return value


def _parse_heating(raw: str, line: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE_LITERALS:
        return True
    if lowered in _FALSE_LITERALS:
        return False
    raise NumericParseError(
        f"unable to parse heating {raw!r}: not a boolean",
        line,
        field="heating",
        value=raw,
    )


def decode_status_line(raw_line: bytes | str) -> StatusSnapshot:
    """Decode one status record into a :class:`StatusSnapshot`.

    Raises:
        StructuralError: The record does not have six fields, or its first
            field is shorter than a mode tag plus one version character.
        NumericParseError: A temperature, the countdown or the heating flag
            is not valid.
    """
    if isinstance(raw_line, bytes):
        text = raw_line.decode("utf-8", errors="replace")
    else:
        text = raw_line
    line = _strip_terminator(text)

    parts = line.split(FIELD_SEPARATOR)
    if len(parts) != FIELD_COUNT:
        raise StructuralError(
            f"unable to parse line {line!r}, it does not contain expected parts",
            line,
        )

    mode_version = list(parts[0])
    if len(mode_version) < 2:
        raise StructuralError(
            f"unable to parse line {line!r}, the mode and version parts could not be found",
            line,
        )

    values = {
        name: _parse_uint16(name, raw, line)
        for name, raw in zip(_INTEGER_FIELDS, parts[1:5])
    }
    heating = _parse_heating(parts[5], line)

    # Anything that is not the steam tag counts as coffee mode.
    mode = Mode.STEAM if mode_version[0] == STEAM_MODE_TAG else Mode.COFFEE

    return StatusSnapshot(
        version="".join(mode_version[1:]),
        mode=mode,
        heating=heating,
        **values,
    )


__all__ = [
    "Mode",
    "StatusSnapshot",
    "decode_status_line",
]
