"""Configuration helpers for the exporter."""

from .model import RuntimeConfig
from .settings import load_runtime_config, runtime_config_from_mapping
from . import logging, settings  # noqa: F401  # pyright: ignore[reportUnusedImport]

__all__ = [
    "RuntimeConfig",
    "load_runtime_config",
    "runtime_config_from_mapping",
]
