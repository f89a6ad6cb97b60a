"""Signal handling that turns SIGINT / SIGTERM into wait cancellation.

The handler never exits the process; it only sets the cancellation event, so
the polling loop can emit its terminal "cancelled" status and the caller can
decide the exit code.
"""

from __future__ import annotations

import asyncio
import signal
from types import FrameType

from smlr.logging import get_logger

logger = get_logger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownHandler:
    """Bridges process signals to an ``asyncio.Event`` cancellation handle."""

    def __init__(self, cancel: asyncio.Event, loop: asyncio.AbstractEventLoop) -> None:
        """Initialize the shutdown handler.

        Args:
            cancel: The cancellation event shared with the waiter.
            loop: The event loop that owns ``cancel``.
        """
        self._cancel = cancel
        self._loop = loop
        self._shutdown_requested = False
        self._previous: dict[int, object] = {}

    @property
    def shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def request_shutdown(self) -> None:
        """Request cancellation of the running wait.

        Safe to call from a signal handler or another thread.
        """
        logger.info("Shutdown requested")
        self._shutdown_requested = True
        self._loop.call_soon_threadsafe(self._cancel.set)

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM).

        Args:
            signum: The signal number received.
            frame: The current stack frame (unused).
        """
        signal_name = signal.Signals(signum).name
        logger.info("Received %s, cancelling wait...", signal_name)
        self.request_shutdown()

    def install_signal_handlers(self) -> None:
        """Install handlers for SIGINT and SIGTERM, remembering the previous ones."""
        for signum in HANDLED_SIGNALS:
            self._previous[signum] = signal.signal(signum, self.handle_signal)
        logger.debug("Signal handlers installed for SIGINT and SIGTERM")

    def restore_signal_handlers(self) -> None:
        """Restore the handlers that were active before installation."""
        for signum, previous in self._previous.items():
            # None means the previous handler was not installed from Python.
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)  # type: ignore[arg-type]
        self._previous.clear()


__all__ = ["HANDLED_SIGNALS", "ShutdownHandler"]
