"""Settings loader for the exporter.

Configuration comes from command-line flags only. Flags that are not given
fall back to the defaults declared on :class:`RuntimeConfigSchema`, and the
merged values are validated before a :class:`RuntimeConfig` is built.
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from typing import Any

from marshmallow import ValidationError

from .. import __version__
from .model import RuntimeConfig
from .schema import RuntimeConfigSchema

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="maraxporter",
        description="Export Lelit Mara X serial status as Prometheus metrics.",
    )
    parser.add_argument(
        "--serial-dev",
        dest="serial_device",
        default=None,
        help="path to the serial device to read (default: /dev/serial0)",
    )
    parser.add_argument(
        "--serial-baud",
        dest="serial_baud",
        type=int,
        default=None,
        help="serial baud rate (default: 9600)",
    )
    parser.add_argument(
        "--host",
        dest="metrics_host",
        default=None,
        help="address for the http server to listen on (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        dest="metrics_port",
        type=int,
        default=None,
        help="port for the http server to listen on (default: 8080)",
    )
    parser.add_argument(
        "--read-timeout",
        dest="read_timeout",
        type=float,
        default=None,
        help="seconds to wait for a status line per scrape (default: 1.0)",
    )
    parser.add_argument(
        "--debug",
        dest="debug_logging",
        action="store_true",
        default=None,
        help="enable debug logging",
    )
    parser.add_argument(
        "--syslog",
        dest="syslog",
        action="store_true",
        default=None,
        help="log to the local syslog socket instead of stderr",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def runtime_config_from_mapping(raw: dict[str, Any]) -> RuntimeConfig:
    """Validate *raw* settings and build a :class:`RuntimeConfig`.

    Raises:
        ValueError: A value is out of range or of the wrong type.
    """
    try:
        return RuntimeConfigSchema().load(raw)
    except ValidationError as exc:
        raise ValueError(f"invalid configuration: {exc.messages}") from exc


def load_runtime_config(argv: Sequence[str] | None = None) -> RuntimeConfig:
    """Load configuration from command-line flags."""

    args = build_arg_parser().parse_args(argv)
    config = runtime_config_from_mapping(vars(args))
    logger.debug("Loaded configuration: %s", config)
    return config


__all__ = [
    "RuntimeConfig",
    "build_arg_parser",
    "load_runtime_config",
    "runtime_config_from_mapping",
]
