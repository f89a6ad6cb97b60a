"""Polling loop that drives a probe until it reports ready, times out, or is cancelled.

The loop is an explicit state machine:

- ``SCHEDULED``: waiting for the next attempt time, the deadline, or
  cancellation, whichever comes first.
- ``IN_FLIGHT``: one probe attempt is running; waiting for its result, the
  deadline, or cancellation, whichever comes first.
- ``TERMINATED``: a terminal status has been emitted (or the consumer closed
  the stream); nothing further is produced.

Every transition out of the loop yields exactly one terminal status, and it
is always the last item of the stream.

Usage:
    from smlr.probes import HTTPProbe
    from smlr.waiter import Waiter

    waiter = Waiter(HTTPProbe(url="http://localhost:8080/health"))
    async for status in waiter.wait(interval=3.0, timeout=300.0, cancel=cancel):
        print(status.message)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any

from smlr.backoff import Backoff
from smlr.logging import get_logger
from smlr.probes.base import Probe, describe_error
from smlr.status import ErrorKind, Status

logger = get_logger(__name__)


class WaitState(Enum):
    """States of the polling loop."""

    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"
    TERMINATED = "terminated"


class Waiter:
    """Drives repeated attempts of a single probe.

    A ``Waiter`` owns its backoff state and supports a single ``wait()``;
    construct a new one to wait again.

    Attributes:
        probe: The probe strategy to run.
        backoff: Delay generator applied between non-terminal attempts.
        attempts: Number of probe attempts started so far.
    """

    def __init__(self, probe: Probe, backoff: Backoff | None = None) -> None:
        """Initialize the waiter.

        Args:
            probe: The probe strategy to run.
            backoff: Optional delay generator. Defaults to 0.5s-3s with jitter.
        """
        self.probe = probe
        self.backoff = backoff or Backoff()
        self.attempts = 0
        self._state = WaitState.SCHEDULED
        self._started = False

    @property
    def state(self) -> WaitState:
        """Current state of the polling loop."""
        return self._state

    async def wait(
        self,
        interval: float,
        timeout: float,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[Status]:
        """Probe until a terminal status occurs, yielding every status.

        The first attempt starts immediately; later attempts are spaced by the
        backoff schedule. ``interval`` is accepted for compatibility with the
        command-line surface but does not pace attempts.

        Args:
            interval: Configured poll interval in seconds (not used for pacing).
            timeout: Overall wall-clock budget in seconds.
            cancel: Optional cancellation handle shared with the probe.

        Yields:
            One status per attempt, then the terminal status last.

        Raises:
            RuntimeError: If this waiter has already been used.
        """
        if self._started:
            raise RuntimeError("Waiter.wait() can only be consumed once")
        self._started = True

        loop = asyncio.get_running_loop()
        cancel = cancel if cancel is not None else asyncio.Event()
        deadline = loop.time() + max(timeout, 0.0)
        next_attempt_at = loop.time()
        log = logger.with_context(target=self.probe.target)
        log.debug(
            "Waiting up to %.3fs (interval %.3fs superseded by backoff)", timeout, interval
        )

        cancelled: asyncio.Future[Any] = asyncio.ensure_future(cancel.wait())
        attempt: asyncio.Future[Status] | None = None
        timer: asyncio.Future[None] | None = None
        try:
            while True:
                terminal = self._interrupt(cancel, loop.time(), deadline)
                if terminal is not None:
                    yield self._finish(terminal)
                    return

                now = loop.time()
                if self._state is WaitState.SCHEDULED:
                    if now < next_attempt_at:
                        timer = asyncio.ensure_future(asyncio.sleep(next_attempt_at - now))
                        await self._race(timer, cancelled, deadline - now)
                        timer.cancel()
                        timer = None
                        continue
                    self.attempts += 1
                    attempt = asyncio.ensure_future(self.probe.attempt(cancel))
                    self._state = WaitState.IN_FLIGHT
                    continue

                assert attempt is not None
                if not attempt.done():
                    await self._race(attempt, cancelled, deadline - now)
                    if not attempt.done():
                        continue

                status = self._result(attempt)
                attempt = None
                if status.done:
                    yield self._finish(status)
                    return
                yield status

                delay = self.backoff.next()
                log.debug(
                    "Next attempt in %.3fs",
                    delay,
                    extra={"diagnostic_tag": "backoff", "attempt": self.attempts},
                )
                next_attempt_at = loop.time() + delay
                self._state = WaitState.SCHEDULED
        finally:
            self._state = WaitState.TERMINATED
            pending = [f for f in (cancelled, timer, attempt) if f is not None and not f.done()]
            for future in pending:
                future.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    @staticmethod
    def _interrupt(cancel: asyncio.Event, now: float, deadline: float) -> Status | None:
        if cancel.is_set():
            return Status.cancelled()
        if now >= deadline:
            return Status.timed_out()
        return None

    @staticmethod
    async def _race(
        work: asyncio.Future[Any], cancelled: asyncio.Future[Any], remaining: float
    ) -> None:
        await asyncio.wait(
            {work, cancelled},
            timeout=max(remaining, 0.0),
            return_when=asyncio.FIRST_COMPLETED,
        )

    def _result(self, attempt: asyncio.Future[Status]) -> Status:
        if attempt.cancelled():
            return Status.cancelled()
        exc = attempt.exception()
        if exc is not None:
            # Probes classify their own failures; anything escaping is unexpected.
            logger.error(
                "Probe attempt raised unexpectedly: %s",
                exc,
                exc_info=exc,
                extra={"target": self.probe.target, "attempt": self.attempts},
            )
            return Status.failed(ErrorKind.IO, describe_error(exc))
        return attempt.result()

    def _finish(self, status: Status) -> Status:
        self._state = WaitState.TERMINATED
        return status


def wait(
    probe: Probe,
    interval: float,
    timeout: float,
    cancel: asyncio.Event | None = None,
    backoff: Backoff | None = None,
) -> AsyncIterator[Status]:
    """Wait on ``probe`` with a fresh ``Waiter``.

    Args:
        probe: The probe strategy to run.
        interval: Configured poll interval in seconds (not used for pacing).
        timeout: Overall wall-clock budget in seconds.
        cancel: Optional cancellation handle.
        backoff: Optional delay generator.

    Returns:
        Async iterator of statuses ending with exactly one terminal status.
    """
    return Waiter(probe, backoff=backoff).wait(interval, timeout, cancel)


__all__ = ["WaitState", "Waiter", "wait"]
