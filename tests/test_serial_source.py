"""Tests for the single-flight serial status source."""

from __future__ import annotations

import asyncio
import dataclasses
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from maraxporter.config.model import RuntimeConfig
from maraxporter.errors import NumericParseError, ReadTimeout, StreamError
from maraxporter.protocol import Mode
from maraxporter.transport import serial as serial_mod
from maraxporter.transport.serial import SerialReadProtocol, SerialStatusSource

from .conftest import STATUS_LINE

PATCH_PATH = "maraxporter.transport.serial.serial_asyncio_fast.create_serial_connection"


def _record(steam_temp: int) -> bytes:
    return f"C1.0,{steam_temp:03d},120,054,0820,1\n".encode()


def _connected_source(config: RuntimeConfig) -> tuple[SerialStatusSource, SerialReadProtocol]:
    source = SerialStatusSource(config)
    proto = SerialReadProtocol()
    transport = MagicMock()
    transport.is_closing.return_value = False
    source.protocol = proto
    source._transport = transport
    return source, proto


@pytest.mark.asyncio
async def test_open_uses_configured_device_and_framing(runtime_config: RuntimeConfig) -> None:
    proto = SerialReadProtocol()
    transport = MagicMock()
    transport.is_closing.return_value = False

    with patch(PATCH_PATH, new_callable=AsyncMock) as mock_create:
        mock_create.return_value = (transport, proto)
        source = SerialStatusSource(runtime_config)
        await source.open()

    _, _, device = mock_create.call_args.args
    assert device == "/dev/null"
    assert mock_create.call_args.kwargs == {
        "baudrate": 9600,
        "bytesize": 8,
        "parity": "N",
        "stopbits": 1,
    }
    assert source.protocol is proto
    assert source.connected is True


@pytest.mark.asyncio
async def test_open_is_idempotent(runtime_config: RuntimeConfig) -> None:
    with patch(PATCH_PATH, new_callable=AsyncMock) as mock_create:
        mock_create.return_value = (MagicMock(), SerialReadProtocol())
        source = SerialStatusSource(runtime_config)
        await source.open()
        await source.open()

    assert mock_create.await_count == 1


@pytest.mark.asyncio
async def test_open_failure_raises_stream_error(runtime_config: RuntimeConfig) -> None:
    with patch(PATCH_PATH, new_callable=AsyncMock) as mock_create:
        mock_create.side_effect = OSError(2, "No such file or directory")
        source = SerialStatusSource(runtime_config)
        with pytest.raises(StreamError, match="unable to open serial device at /dev/null"):
            await source.open()

    assert source.protocol is None


@pytest.mark.asyncio
async def test_context_manager_closes_transport(runtime_config: RuntimeConfig) -> None:
    transport = MagicMock()
    transport.is_closing.return_value = False

    with patch(PATCH_PATH, new_callable=AsyncMock) as mock_create:
        mock_create.return_value = (transport, SerialReadProtocol())
        async with SerialStatusSource(runtime_config) as source:
            assert source.connected is True

    transport.close.assert_called_once()
    assert source.protocol is None
    assert source.connected is False


@pytest.mark.asyncio
async def test_read_status_decodes_line(runtime_config: RuntimeConfig) -> None:
    source, proto = _connected_source(runtime_config)
    proto.data_received(STATUS_LINE)

    status = await source.read_status()

    assert status.mode is Mode.COFFEE
    assert status.version == "1.23"
    assert status.ready_countdown == 820


@pytest.mark.asyncio
async def test_read_status_before_open_is_stream_error(runtime_config: RuntimeConfig) -> None:
    source = SerialStatusSource(runtime_config)

    with pytest.raises(StreamError, match="not open"):
        await source.read_status()


@pytest.mark.asyncio
async def test_read_status_times_out_on_silent_device(runtime_config: RuntimeConfig) -> None:
    source, _ = _connected_source(runtime_config)

    with pytest.raises(ReadTimeout):
        await source.read_status()


@pytest.mark.asyncio
async def test_read_status_propagates_decode_errors(runtime_config: RuntimeConfig) -> None:
    source, proto = _connected_source(runtime_config)
    proto.data_received(b"C1.23,abc,120,054,0820,1\r\n")

    with pytest.raises(NumericParseError) as excinfo:
        await source.read_status()

    assert excinfo.value.field == "steam_temp"


@pytest.mark.asyncio
async def test_read_status_returns_newest_record(runtime_config: RuntimeConfig) -> None:
    source, proto = _connected_source(runtime_config)
    for steam_temp in range(30):
        proto.data_received(_record(steam_temp))

    status = await source.read_status()

    assert status.steam_temp == 29


@pytest.mark.asyncio
async def test_read_status_drops_backlog_left_by_previous_read(runtime_config: RuntimeConfig) -> None:
    source, proto = _connected_source(runtime_config)
    proto.reader.feed_data(b"".join(_record(steam_temp) for steam_temp in range(5)))

    status = await source.read_status()

    assert status.steam_temp == 4


@pytest.mark.asyncio
async def test_queued_reads_each_wait_for_their_own_record(runtime_config: RuntimeConfig) -> None:
    source, proto = _connected_source(runtime_config)
    loop = asyncio.get_running_loop()
    loop.call_later(0.02, proto.data_received, _record(1))
    loop.call_later(0.06, proto.data_received, _record(2))

    first, second = await asyncio.gather(source.read_status(), source.read_status())

    assert {first.steam_temp, second.steam_temp} == {1, 2}


@pytest.mark.asyncio
async def test_queued_reads_share_one_deadline(runtime_config: RuntimeConfig) -> None:
    config = dataclasses.replace(runtime_config, read_timeout=0.3)
    source, _ = _connected_source(config)
    loop = asyncio.get_running_loop()

    started = loop.time()
    results = await asyncio.gather(source.read_status(), source.read_status(), return_exceptions=True)
    elapsed = loop.time() - started

    assert all(isinstance(result, ReadTimeout) for result in results)
    assert elapsed < 0.3 + 0.15


@pytest.mark.asyncio
async def test_only_one_read_in_flight(runtime_config: RuntimeConfig) -> None:
    source, _ = _connected_source(runtime_config)
    active = 0
    peak = 0
    original = serial_mod.read_line

    async def _tracking_read_line(reader: asyncio.StreamReader, timeout: float) -> bytes:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        try:
            await asyncio.sleep(0.01)
            reader.feed_data(STATUS_LINE)
            return await original(reader, timeout)
        finally:
            active -= 1

    with patch.object(serial_mod, "read_line", _tracking_read_line):
        results = await asyncio.gather(*(source.read_status() for _ in range(3)))

    assert peak == 1
    assert all(status.steam_temp == 68 for status in results)


@pytest.mark.asyncio
async def test_pending_flag_is_cleared_after_timeout(runtime_config: RuntimeConfig) -> None:
    source, proto = _connected_source(runtime_config)

    with pytest.raises(ReadTimeout):
        await source.read_status()

    assert proto.read_pending is False
