#!/usr/bin/env python3
"""Async orchestrator for the Mara X exporter.

Architecture:
    main() -> ExporterDaemon -> TaskGroup
        └── prometheus-exporter (PrometheusExporter, supervised)

The serial device is opened once at startup. Failing to open it aborts the
process; losing it later surfaces as per-scrape read errors.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import NoReturn

import msgspec
import tenacity

# uvloop is mandatory; the daemon always runs on it.
import uvloop

from maraxporter.config.logging import configure_logging
from maraxporter.config.model import RuntimeConfig
from maraxporter.config.settings import build_arg_parser, load_runtime_config
from maraxporter.const import (
    SUPERVISOR_MAX_BACKOFF,
    SUPERVISOR_MAX_RESTARTS,
    SUPERVISOR_MIN_BACKOFF,
)
from maraxporter.errors import StreamError
from maraxporter.metrics import PrometheusExporter
from maraxporter.transport import SerialStatusSource

logger = logging.getLogger("maraxporter")


class SupervisedTaskSpec(msgspec.Struct):
    """Specification for a supervised async task."""

    name: str
    factory: Callable[[], Awaitable[None]]
    max_restarts: int | None = SUPERVISOR_MAX_RESTARTS
    min_backoff: float = SUPERVISOR_MIN_BACKOFF
    max_backoff: float = SUPERVISOR_MAX_BACKOFF


class ExporterDaemon:
    """Own the serial source and the HTTP exporter for one process.

    Attributes:
        config: Validated runtime configuration.
        source: Single-flight reader for the machine's status stream.
        exporter: HTTP server that reads one status per scrape.
    """

    def __init__(self, config: RuntimeConfig):
        self.config = config
        self.source = SerialStatusSource(config)
        self.exporter = PrometheusExporter(
            self.source.read_status,
            config.metrics_host,
            config.metrics_port,
        )

    def _setup_supervision(self) -> list[SupervisedTaskSpec]:
        return [
            SupervisedTaskSpec(
                name="prometheus-exporter",
                factory=self.exporter.run,
            ),
        ]

    async def _supervise_task(self, spec: SupervisedTaskSpec) -> None:
        """Run *spec.factory*, restarting it on failures using tenacity."""
        log = logging.getLogger("maraxporter.supervisor")
        callbacks = self._SupervisorCallbacks(spec.name, log)

        retryer = tenacity.AsyncRetrying(
            wait=tenacity.wait_exponential(multiplier=spec.min_backoff, max=spec.max_backoff),
            retry=tenacity.retry_if_exception_type(Exception),
            stop=tenacity.stop_after_attempt(
                spec.max_restarts + 1
            ) if spec.max_restarts is not None else tenacity.stop_never,
            before_sleep=callbacks.before_sleep,
            reraise=True,
        )

        started = 0.0
        try:
            async for attempt in retryer:
                with attempt:
                    started = time.monotonic()
                    await spec.factory()
                    log.warning("%s task exited cleanly; supervisor exiting", spec.name)
                    return
        except asyncio.CancelledError:
            log.debug("%s supervisor cancelled", spec.name)
            raise
        except Exception:
            log.error(
                "%s exceeded max restarts (%s) after %.1fs; giving up",
                spec.name,
                spec.max_restarts,
                time.monotonic() - started,
            )
            raise

    class _SupervisorCallbacks:
        """Helper to avoid nested functions in supervisor."""

        __slots__ = ("name", "log")

        def __init__(self, name: str, log: logging.Logger):
            self.name = name
            self.log = log

        def before_sleep(self, retry_state: tenacity.RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            self.log.error("%s failed (%s); restarting in %.1fs", self.name, exc, delay)

    async def run(self) -> None:
        """Main async entry point."""
        supervised_tasks = self._setup_supervision()

        try:
            async with self.source:
                async with asyncio.TaskGroup() as task_group:
                    for spec in supervised_tasks:
                        task_group.create_task(self._supervise_task(spec))
        except* asyncio.CancelledError:
            logger.info("Main task cancelled; shutting down.")
        finally:
            logger.info("Mara X exporter stopped.")


def main(argv: Sequence[str] | None = None) -> NoReturn:  # pragma: no cover (Entry point wrapper)
    try:
        config = load_runtime_config(argv)
    except ValueError as exc:
        build_arg_parser().exit(1, f"maraxporter: error: {exc}\n")
    configure_logging(config)

    logger.info(
        "Starting Mara X exporter. Serial: %s@%d HTTP: %s:%d",
        config.serial_device,
        config.serial_baud,
        config.metrics_host,
        config.metrics_port,
    )

    try:
        daemon = ExporterDaemon(config)
        asyncio.run(daemon.run(), loop_factory=uvloop.new_event_loop)
        sys.exit(0)
    except KeyboardInterrupt:
        logger.info("Exporter interrupted by user.")
        sys.exit(0)
    except StreamError as exc:
        logger.critical("Serial device unavailable: %s", exc)
        sys.exit(1)
    except ExceptionGroup as exc_group:
        for group_exc in exc_group.exceptions:
            logger.critical("Fatal error in task group: %s", group_exc, exc_info=group_exc)
        sys.exit(1)
    except OSError as exc:
        logger.critical("System/OS error during exporter execution: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
