"""Data model for the exporter configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ..const import (
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_SERIAL_BAUD,
    DEFAULT_SERIAL_DEVICE,
    DEFAULT_SYSLOG,
)


@dataclass(slots=True, frozen=True)
class RuntimeConfig:
    """Strongly typed configuration for the exporter."""

    serial_device: str = DEFAULT_SERIAL_DEVICE
    serial_baud: int = DEFAULT_SERIAL_BAUD
    metrics_host: str = DEFAULT_METRICS_HOST
    metrics_port: int = DEFAULT_METRICS_PORT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    syslog: bool = DEFAULT_SYSLOG
