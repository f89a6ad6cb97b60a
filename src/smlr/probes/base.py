"""Shared probe protocol and cancellation handling."""

from __future__ import annotations

import asyncio
import contextlib
import errno
import socket
from collections.abc import Coroutine, Iterator
from typing import Any, Protocol, runtime_checkable

from smlr.status import Status

MESSAGE_CONNECTION_REFUSED = "connection refused"
MESSAGE_UNREACHABLE_HOST = "could not reach host"

# Socket errors reported as a refused connection rather than a fatal error.
REFUSED_ERRNOS = frozenset(
    {
        errno.ECONNREFUSED,
        errno.EADDRNOTAVAIL,
        errno.ENETUNREACH,
        errno.EHOSTUNREACH,
    }
)


@runtime_checkable
class Probe(Protocol):
    """Protocol for readiness probe strategies.

    A probe performs exactly one network interaction per ``attempt()`` and
    classifies it as a ``Status``. Probes never raise: every outcome,
    including cancellation, is returned as a status.
    """

    @property
    def target(self) -> str:
        """The URL or address being probed, for logging."""
        ...  # pragma: no cover

    async def attempt(self, cancel: asyncio.Event | None = None) -> Status:
        """Run one probe attempt.

        Args:
            cancel: Optional cancellation handle. When set while the attempt is
                in flight, the attempt is aborted and a terminal cancelled
                status is returned.

        Returns:
            The status describing the attempt outcome.
        """
        ...  # pragma: no cover


async def run_cancellable(
    coro: Coroutine[Any, Any, Status],
    cancel: asyncio.Event | None,
) -> Status:
    """Run a probe coroutine, aborting it if ``cancel`` is set first.

    The coroutine runs as its own task; cancelling that task unwinds its
    ``finally`` blocks, which close any connection it opened.

    Args:
        coro: The probe coroutine.
        cancel: Optional cancellation handle.

    Returns:
        The coroutine's status, or a terminal cancelled status.
    """
    if cancel is None:
        return await coro
    if cancel.is_set():
        coro.close()
        return Status.cancelled()

    work = asyncio.ensure_future(coro)
    cancelled = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancelled.cancel()
        if not work.done():
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work

    if work.cancelled():
        return Status.cancelled()
    return work.result()


def iter_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and every exception it was raised from.

    Follows ``__cause__`` and ``__context__`` and descends into exception
    groups, so that the OS error underneath a library's wrapper exception
    can be inspected by type.
    """
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        if isinstance(current, BaseExceptionGroup):
            stack.extend(current.exceptions)
        if current.__cause__ is not None:
            stack.append(current.__cause__)
        if current.__context__ is not None:
            stack.append(current.__context__)


def classify_connect_error(exc: BaseException) -> str | None:
    """Map a connection failure to its stable status message.

    Args:
        exc: The exception raised while connecting.

    Returns:
        ``"could not reach host"`` for name resolution failures,
        ``"connection refused"`` for refused or unroutable connections, or
        ``None`` when the failure is of neither kind.
    """
    chain = list(iter_exception_chain(exc))
    if any(isinstance(e, socket.gaierror) for e in chain):
        return MESSAGE_UNREACHABLE_HOST
    for e in chain:
        if isinstance(e, ConnectionRefusedError):
            return MESSAGE_CONNECTION_REFUSED
        if isinstance(e, OSError) and e.errno in REFUSED_ERRNOS:
            return MESSAGE_CONNECTION_REFUSED
    return None


def describe_error(exc: BaseException) -> str:
    """Render an exception as status text, falling back to its type name."""
    return str(exc) or type(exc).__name__


__all__ = [
    "MESSAGE_CONNECTION_REFUSED",
    "MESSAGE_UNREACHABLE_HOST",
    "Probe",
    "REFUSED_ERRNOS",
    "classify_connect_error",
    "describe_error",
    "iter_exception_chain",
    "run_cancellable",
]
