"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

from typing import Any, Dict

from marshmallow import Schema, fields, post_load, pre_load, validate

from ..const import (
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_SERIAL_BAUD,
    DEFAULT_SERIAL_DEVICE,
    DEFAULT_SYSLOG,
)
from .model import RuntimeConfig


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for the exporter configuration."""

    # Serial
    serial_device = fields.Str(load_default=DEFAULT_SERIAL_DEVICE, validate=validate.Length(min=1))
    serial_baud = fields.Int(load_default=DEFAULT_SERIAL_BAUD, validate=validate.Range(min=300))
    read_timeout = fields.Float(
        load_default=DEFAULT_READ_TIMEOUT,
        validate=validate.Range(min=0.0, min_inclusive=False, max=60.0),
    )

    # HTTP
    metrics_host = fields.Str(load_default=DEFAULT_METRICS_HOST)
    metrics_port = fields.Int(load_default=DEFAULT_METRICS_PORT, validate=validate.Range(min=0, max=65535))

    # Logging
    debug_logging = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)
    syslog = fields.Bool(load_default=DEFAULT_SYSLOG)

    @pre_load
    def strip_strings(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        return {
            key: value.strip() if isinstance(value, str) else value
            for key, value in data.items()
            if value is not None
        }

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        return RuntimeConfig(**data)
