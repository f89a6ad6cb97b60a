"""Application runner for smlr.

This module coordinates:
- Argument parsing and configuration loading
- Logging setup
- Building the requested probe
- Consuming the status stream and mapping the terminal status to an exit code

The polling core never exits the process; ``main`` only returns an exit code.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses

from smlr.backoff import Backoff
from smlr.cli import parse_args
from smlr.config import Config, load_config
from smlr.logging import get_logger, log_status, setup_logging
from smlr.probes import HTTPProbe, Probe, TCPProbe
from smlr.shutdown import ShutdownHandler
from smlr.status import Status
from smlr.waiter import Waiter

logger = get_logger(__name__)

EXIT_READY = 0
EXIT_FAILED = 1


def apply_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply command-line overrides on top of the loaded configuration.

    Args:
        config: Configuration loaded from the environment.
        parsed: Parsed command-line arguments.

    Returns:
        A new Config with every explicitly given flag applied.
    """
    overrides: dict[str, object] = {}
    if parsed.interval is not None:
        overrides["interval"] = parsed.interval
    if parsed.timeout is not None:
        overrides["timeout"] = parsed.timeout
    if parsed.log_level is not None:
        overrides["log_level"] = parsed.log_level
    if parsed.log_json:
        overrides["log_json"] = True
    if getattr(parsed, "iotimeout", None) is not None:
        overrides["io_timeout"] = parsed.iotimeout
    return dataclasses.replace(config, **overrides)  # type: ignore[arg-type]


def build_probe(parsed: argparse.Namespace, config: Config) -> Probe:
    """Build the probe selected on the command line.

    Args:
        parsed: Parsed command-line arguments.
        config: Effective configuration.

    Returns:
        An HTTP or TCP probe.
    """
    if parsed.probe == "http":
        return HTTPProbe(
            url=parsed.url,
            method=parsed.method,
            expected_status=parsed.status,
            content=parsed.content,
            entire_content=parsed.complete,
        )
    return TCPProbe(
        address=parsed.address,
        write=parsed.write,
        content=parsed.content,
        entire_content=parsed.complete,
        io_timeout=config.io_timeout,
    )


def build_backoff(config: Config) -> Backoff:
    """Build the backoff generator from configuration."""
    return Backoff(
        minimum=config.backoff_min,
        maximum=config.backoff_max,
        jitter=config.backoff_jitter,
    )


async def run_wait(probe: Probe, config: Config, cancel: asyncio.Event) -> Status:
    """Wait on ``probe``, logging every status.

    Args:
        probe: The probe to run.
        config: Effective configuration.
        cancel: Cancellation handle.

    Returns:
        The terminal status of the wait.
    """
    waiter = Waiter(probe, backoff=build_backoff(config))
    log = logger.with_context(target=probe.target)
    log.info("Waiting for %s (timeout %.1fs)", probe.target, config.timeout)

    terminal = Status.cancelled()
    count = 0
    async for status in waiter.wait(config.interval, config.timeout, cancel):
        count += 1
        log_status(logger, status, count, probe.target)
        terminal = status
    return terminal


async def _run(probe: Probe, config: Config) -> Status:
    cancel = asyncio.Event()
    handler = ShutdownHandler(cancel, asyncio.get_running_loop())
    handler.install_signal_handlers()
    try:
        return await run_wait(probe, config, cancel)
    finally:
        handler.restore_signal_handlers()


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        0 when the service became ready, 1 when the wait ended with an error.
    """
    parsed = parse_args(args)
    config = apply_overrides(load_config(parsed.env_file), parsed)
    setup_logging(
        level=config.log_level,
        json_format=config.log_json,
        diagnostic_tags=config.diagnostic_tags,
    )

    probe = build_probe(parsed, config)
    terminal = asyncio.run(_run(probe, config))
    return EXIT_READY if terminal.succeeded else EXIT_FAILED


__all__ = [
    "EXIT_FAILED",
    "EXIT_READY",
    "apply_overrides",
    "build_backoff",
    "build_probe",
    "main",
    "run_wait",
]
