"""Serial transport for the Mara X status port.

The machine streams status records continuously. A :class:`SerialReadProtocol`
feeds every received byte into an :class:`asyncio.StreamReader` and, while no
read is pending, keeps only the newest complete record in it. Scrapes pull
exactly one line from that reader through :func:`read_line`, which never
waits past its deadline.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import cast

# pyserial-asyncio-fast is mandatory; there is no fallback transport.
import serial_asyncio_fast  # type: ignore

from ..config.model import RuntimeConfig
from ..const import (
    LINE_TERMINATOR,
    MAX_LINE_BYTES,
    SERIAL_BYTESIZE,
    SERIAL_PARITY,
    SERIAL_STOPBITS,
)
from ..errors import ReadTimeout, StreamError
from ..protocol.status import StatusSnapshot, decode_status_line

logger = logging.getLogger("maraxporter.serial")


def _buffered(reader: asyncio.StreamReader) -> bytearray:
    # StreamReader has no public peek; its pending bytes live in _buffer.
    return cast(bytearray, reader._buffer)  # type: ignore[attr-defined]


def discard_stale_lines(reader: asyncio.StreamReader) -> int:
    """Drop every complete line buffered in *reader* except the newest.

    An unterminated tail after the newest line is kept. Must not be called
    while a read on *reader* is pending. Returns the number of bytes dropped.
    """
    buffer = _buffered(reader)
    newest_end = buffer.rfind(LINE_TERMINATOR)
    if newest_end < 0:
        return 0
    previous_end = buffer.rfind(LINE_TERMINATOR, 0, newest_end)
    if previous_end < 0:
        return 0
    dropped = previous_end + len(LINE_TERMINATOR)
    del buffer[:dropped]
    return dropped


async def read_line(reader: asyncio.StreamReader, timeout: float) -> bytes:
    """Read the next newline-terminated record from *reader*.

    Returns the raw bytes including the terminator. The pending read is
    cancelled when *timeout* elapses; bytes already buffered stay in the
    reader, so the next call resumes from the same position.

    Raises:
        ReadTimeout: No complete line arrived within *timeout* seconds.
        StreamError: The stream ended, failed, or produced a line longer
            than ``MAX_LINE_BYTES``.
    """
    try:
        return await asyncio.wait_for(reader.readuntil(LINE_TERMINATOR), timeout)
    except TimeoutError as exc:
        raise ReadTimeout(f"timeout reading from serial device after {timeout:.3f}s") from exc
    except asyncio.IncompleteReadError as exc:
        raise StreamError(
            f"serial stream closed after {len(exc.partial)} bytes of an incomplete line"
        ) from exc
    except asyncio.LimitOverrunError as exc:
        # consumed stops short of the terminator when one was found past the limit.
        dropped = exc.consumed
        if _buffered(reader).startswith(LINE_TERMINATOR, dropped):
            dropped += len(LINE_TERMINATOR)
        await reader.readexactly(dropped)
        raise StreamError(f"oversized line of {dropped} bytes discarded") from exc
    except OSError as exc:
        raise StreamError(f"serial read failed: {exc}") from exc


class SerialReadProtocol(asyncio.Protocol):
    """Feed serial bytes into a bounded :class:`asyncio.StreamReader`.

    Attributes:
        read_pending: Set by the reader side while a :func:`read_line` call
            is in flight; stale lines are only trimmed while it is false.
    """

    def __init__(self, limit: int = MAX_LINE_BYTES) -> None:
        self.reader = asyncio.StreamReader(limit=limit)
        self.transport: asyncio.Transport | None = None
        self.read_pending = False

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.Transport, transport)
        self.reader.set_transport(self.transport)
        logger.info("Serial transport established.")

    def data_received(self, data: bytes) -> None:
        self.reader.feed_data(data)
        if not self.read_pending:
            discard_stale_lines(self.reader)

    def connection_lost(self, exc: Exception | None) -> None:
        logger.warning("Serial connection lost: %s", exc)
        self.transport = None
        if exc is not None:
            self.reader.set_exception(exc)
        else:
            self.reader.feed_eof()


class SerialStatusSource:
    """Single-flight access to the machine's status stream.

    The serial connection is not safe for concurrent readers, so every
    :meth:`read_status` call holds a lock for the duration of its read. The
    read timeout bounds the whole call, including time spent queued behind
    another scrape. Each read returns the newest buffered record, or the
    next one to arrive.
    """

    def __init__(self, config: RuntimeConfig) -> None:
        self.config = config
        self.protocol: SerialReadProtocol | None = None
        self._transport: asyncio.BaseTransport | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    async def open(self) -> None:
        if self.protocol is not None:
            return
        loop = asyncio.get_running_loop()
        logger.info(
            "Opening %s at %d baud...",
            self.config.serial_device,
            self.config.serial_baud,
        )
        protocol_factory = functools.partial(SerialReadProtocol, MAX_LINE_BYTES)
        try:
            transport, proto = await serial_asyncio_fast.create_serial_connection(
                loop,
                protocol_factory,
                self.config.serial_device,
                baudrate=self.config.serial_baud,
                bytesize=SERIAL_BYTESIZE,
                parity=SERIAL_PARITY,
                stopbits=SERIAL_STOPBITS,
            )
        except (OSError, ValueError) as exc:
            raise StreamError(
                f"unable to open serial device at {self.config.serial_device}: {exc}"
            ) from exc
        self._transport = transport
        self.protocol = cast(SerialReadProtocol, proto)

    async def close(self) -> None:
        if self._transport is not None and not self._transport.is_closing():
            self._transport.close()
        self._transport = None
        self.protocol = None

    async def __aenter__(self) -> SerialStatusSource:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def read_line(self) -> bytes:
        protocol = self.protocol
        if protocol is None:
            raise StreamError("serial device is not open")
        timeout = self.config.read_timeout
        try:
            async with asyncio.timeout(timeout):
                async with self._lock:
                    dropped = discard_stale_lines(protocol.reader)
                    if dropped:
                        logger.debug("Dropped %d bytes of stale status lines", dropped)
                    protocol.read_pending = True
                    try:
                        return await read_line(protocol.reader, timeout)
                    finally:
                        protocol.read_pending = False
        except ReadTimeout:
            raise
        except TimeoutError as exc:
            raise ReadTimeout(f"timeout waiting for serial device after {timeout:.3f}s") from exc

    async def read_status(self) -> StatusSnapshot:
        """Read and decode one status record.

        Raises:
            ReadError: No line could be read in time.
            DecodeError: The line is not a valid status record.
        """
        line = await self.read_line()
        logger.debug("Status line received", extra={"line": line})
        return decode_status_line(line)


__all__ = [
    "SerialReadProtocol",
    "SerialStatusSource",
    "discard_stale_lines",
    "read_line",
]
