"""Status values published by the polling loop.

A ``Status`` is emitted once per probe attempt and once at termination.
Only the final status of a wait has ``done=True``; only terminal failures
carry a ``ProbeError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Categories of fatal conditions that end a wait."""

    REQUEST = "request"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"
    IO = "io"
    NO_MATCH = "no_match"
    NO_MATCH_TIMEOUT = "no_match_timeout"


NO_MATCH_DETAIL = "no content match"
NO_MATCH_TIMEOUT_DETAIL = "no content match within iotimeout"
TIMED_OUT_DETAIL = "timed out"
CANCELLED_DETAIL = "cancelled, ceasing wait"
SERVICE_AVAILABLE = "service available"


class ProbeError(Exception):
    """A fatal probe or wait condition carried on a terminal status.

    Instances are attached to ``Status.error`` as values; the polling loop
    never raises them to the consumer.

    Attributes:
        kind: The category of the failure.
        detail: Human-readable description of the failure.
    """

    def __init__(self, kind: ErrorKind, detail: str) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail

    def __repr__(self) -> str:
        return f"ProbeError({self.kind.name}, {self.detail!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProbeError):
            return NotImplemented
        return self.kind is other.kind and self.detail == other.detail

    def __hash__(self) -> int:
        return hash((self.kind, self.detail))


@dataclass(frozen=True)
class Status:
    """Observation of a single attempt, or of the end of a wait.

    Attributes:
        done: True iff no further attempts will occur.
        message: Human-readable, non-authoritative description.
        error: Present only for fatal conditions.
    """

    done: bool
    message: str = ""
    error: ProbeError | None = None

    @property
    def succeeded(self) -> bool:
        """Whether this is a terminal success."""
        return self.done and self.error is None

    @classmethod
    def pending(cls, message: str) -> Status:
        """Create a non-terminal "not ready yet" status."""
        return cls(done=False, message=message)

    @classmethod
    def available(cls) -> Status:
        """Create the terminal success status."""
        return cls(done=True, message=SERVICE_AVAILABLE)

    @classmethod
    def failed(cls, kind: ErrorKind, detail: str) -> Status:
        """Create a terminal failure status."""
        return cls(done=True, message=detail, error=ProbeError(kind, detail))

    @classmethod
    def timed_out(cls) -> Status:
        return cls.failed(ErrorKind.TIMEOUT, TIMED_OUT_DETAIL)

    @classmethod
    def cancelled(cls) -> Status:
        return cls.failed(ErrorKind.CANCELLED, CANCELLED_DETAIL)


__all__ = [
    "CANCELLED_DETAIL",
    "ErrorKind",
    "NO_MATCH_DETAIL",
    "NO_MATCH_TIMEOUT_DETAIL",
    "ProbeError",
    "SERVICE_AVAILABLE",
    "Status",
    "TIMED_OUT_DETAIL",
]
