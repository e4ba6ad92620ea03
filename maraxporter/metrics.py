"""Prometheus exporter for the Mara X status feed."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from http import HTTPStatus
from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import (
    GaugeMetricFamily,
    InfoMetricFamily,
)
from prometheus_client.registry import Collector

from .errors import MaraXError
from .protocol.status import StatusSnapshot

logger = logging.getLogger("maraxporter.metrics")

StatusReader = Callable[[], Awaitable[StatusSnapshot]]

_SCRAPE_PATHS = frozenset({"/", "/metrics"})
_PLAIN_TEXT = "text/plain; charset=utf-8"

_INFO_METRIC = "mara_x"
_GAUGES: tuple[tuple[str, str, str], ...] = (
    ("mara_x_steam_temperature", "The current steam temperature.", "steam_temp"),
    (
        "mara_x_steam_target_temperature",
        "The steam target temperature it wants to reach.",
        "steam_target_temp",
    ),
    ("mara_x_hx_temperature", "Temperature of the heat exchanger.", "hx_temp"),
    (
        "mara_x_ready_countdown",
        "Shows if the machine is in 'fast heating' mode.",
        "ready_countdown",
    ),
)


class _StatusCollector(Collector):
    """Prometheus collector that projects one status snapshot.

    A collector with no snapshot yields nothing, so a failed scrape is served
    as an empty exposition rather than stale values.
    """

    def __init__(self, status: StatusSnapshot | None) -> None:
        self._status = status

    def collect(self) -> Iterator[Any]:
        status = self._status
        if status is None:
            return

        yield InfoMetricFamily(
            _INFO_METRIC,
            "Contains information about the Mara X machine.",
            value={"version": status.version, "mode": str(status.mode)},
        )
        for name, documentation, attribute in _GAUGES:
            yield GaugeMetricFamily(name, documentation, value=float(getattr(status, attribute)))
        yield GaugeMetricFamily(
            "mara_x_heating",
            "Indicates whether the heating element is on or off.",
            value=1.0 if status.heating else 0.0,
        )


def render_status(status: StatusSnapshot | None) -> bytes:
    """Render *status* in the Prometheus text format."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(_StatusCollector(status))
    return generate_latest(registry)


def _http_response(status: HTTPStatus, body: bytes = b"", content_type: str = _PLAIN_TEXT) -> bytes:
    head = (
        f"HTTP/1.1 {status.value} {status.phrase}\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("latin-1") + body


async def _read_request(reader: asyncio.StreamReader) -> tuple[str, str] | None:
    """Return ``(method, path)`` of one HTTP request, or ``None`` if the client sent nothing.

    Raises:
        ValueError: The request line has no method and target.
    """
    request_line = await reader.readline()
    if not request_line:
        return None
    # Headers are not used; drain them up to the blank line.
    while await reader.readline() not in (b"", b"\r\n", b"\n"):
        pass
    parts = request_line.decode("latin-1").split()
    if len(parts) < 2:
        raise ValueError(f"malformed request line {request_line!r}")
    method, target = parts[0], parts[1]
    return method, target.partition("?")[0]


class PrometheusExporter:
    """Serve a fresh status read on every scrape via the Prometheus text format."""

    def __init__(self, read_status: StatusReader, host: str, port: int) -> None:
        self._read_status = read_status
        self._host = host
        self._port = port
        self._server: asyncio.Server | None = None

    @property
    def port(self) -> int:
        """The listening port; resolves ``0`` to the port the OS picked."""
        if self._server is None or not self._server.sockets:
            return self._port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        if self._server is None:
            self._server = await asyncio.start_server(self._handle_client, self._host, self._port)
            logger.info("Serving metrics on http://%s:%d/metrics", self._host, self.port)

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is not None:
            server.close()
            await server.wait_closed()
            logger.info("Metrics server closed")

    async def run(self) -> None:
        await self.start()
        assert self._server is not None
        try:
            await self._server.serve_forever()
        finally:
            await self.stop()

    async def scrape(self) -> StatusSnapshot | None:
        """Read one status snapshot, or ``None`` if the read or decode failed."""
        try:
            return await self._read_status()
        except MaraXError as exc:
            logger.warning(
                "error collecting metrics from serial port: %s",
                exc,
                extra={"error": type(exc).__name__},
            )
            return None

    async def _respond(self, method: str, path: str) -> bytes:
        if method != "GET" or path not in _SCRAPE_PATHS:
            return _http_response(HTTPStatus.NOT_FOUND)
        status = await self.scrape()
        return _http_response(HTTPStatus.OK, render_status(status), CONTENT_TYPE_LATEST)

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            try:
                request = await _read_request(reader)
            except ValueError as exc:
                logger.debug("Rejecting metrics request: %s", exc)
                writer.write(_http_response(HTTPStatus.BAD_REQUEST))
            else:
                if request is not None:
                    writer.write(await self._respond(*request))
            await writer.drain()
        except OSError as exc:
            logger.warning("Metrics client went away: %s", exc)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                logger.debug("Metrics client reset the connection on close")


__all__ = [
    "PrometheusExporter",
    "StatusReader",
    "render_status",
]
