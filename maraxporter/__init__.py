"""Prometheus exporter for the Lelit Mara X serial status port."""

__version__ = "1.0.0"
