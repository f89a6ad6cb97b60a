"""Incremental content matching over a byte stream.

``StreamMatcher`` is a Knuth-Morris-Pratt automaton: it consumes bytes as
they arrive and reports a match as soon as the pattern has appeared, keeping
only ``len(pattern)`` bytes of state no matter how long the stream runs.

``match_stream`` drives a matcher from an ``asyncio.StreamReader`` and
applies the I/O timeout to every individual read (a rolling deadline),
so a peer that goes quiet for longer than the timeout ends the match even
if it sent data earlier.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from smlr.logging import get_logger

logger = get_logger(__name__)

READ_CHUNK_SIZE = 4096


class MatchOutcome(Enum):
    """How a streaming match ended."""

    MATCHED = "matched"
    NO_MATCH = "no_match"
    NO_MATCH_TIMEOUT = "no_match_timeout"


class StreamMatcher:
    """Substring search automaton fed one chunk at a time.

    Example::

        matcher = StreamMatcher(b"pong")
        matcher.feed(b"pi")     # False
        matcher.feed(b"ng po")  # False
        matcher.feed(b"ng")     # True
    """

    def __init__(self, pattern: bytes) -> None:
        """Initialize the matcher.

        Args:
            pattern: Bytes to search for. An empty pattern matches immediately.
        """
        self.pattern = pattern
        self.bytes_seen = 0
        self._failure = self._build_failure(pattern)
        self._state = 0
        self._matched = not pattern

    @staticmethod
    def _build_failure(pattern: bytes) -> list[int]:
        # failure[i]: length of the longest proper prefix of pattern[:i + 1]
        # that is also a suffix of it.
        failure = [0] * len(pattern)
        k = 0
        for i in range(1, len(pattern)):
            while k > 0 and pattern[i] != pattern[k]:
                k = failure[k - 1]
            if pattern[i] == pattern[k]:
                k += 1
            failure[i] = k
        return failure

    @property
    def matched(self) -> bool:
        """Whether the pattern has been seen."""
        return self._matched

    def feed(self, chunk: bytes) -> bool:
        """Consume more bytes from the stream.

        Args:
            chunk: The next bytes read from the stream.

        Returns:
            True once the pattern has been seen anywhere in the stream.
        """
        if self._matched:
            return True

        pattern = self.pattern
        failure = self._failure
        state = self._state
        for offset, byte in enumerate(chunk):
            while state > 0 and byte != pattern[state]:
                state = failure[state - 1]
            if byte == pattern[state]:
                state += 1
            if state == len(pattern):
                self._matched = True
                self.bytes_seen += offset + 1
                self._state = state
                return True

        self._state = state
        self.bytes_seen += len(chunk)
        return False


async def read_with_deadline(reader: asyncio.StreamReader, n: int, io_timeout: float) -> bytes:
    """Read up to ``n`` bytes, failing if nothing arrives within ``io_timeout``.

    A non-positive timeout is treated as an already-expired deadline.

    Raises:
        TimeoutError: If the deadline passes before any data or EOF arrives.
    """
    if io_timeout <= 0:
        raise TimeoutError("read deadline already expired")
    return await asyncio.wait_for(reader.read(n), timeout=io_timeout)


async def match_stream(
    reader: asyncio.StreamReader,
    matcher: StreamMatcher,
    io_timeout: float,
    chunk_size: int = READ_CHUNK_SIZE,
) -> MatchOutcome:
    """Feed ``matcher`` from ``reader`` until it matches, the stream ends, or a read stalls.

    The deadline is reset before every read.

    Args:
        reader: Stream to read from.
        matcher: Matcher to feed.
        io_timeout: Maximum seconds any single read may wait.
        chunk_size: Maximum bytes per read.

    Returns:
        The first outcome reached.

    Raises:
        OSError: For I/O errors other than a read timeout.
    """
    if matcher.matched:
        return MatchOutcome.MATCHED

    while True:
        try:
            chunk = await read_with_deadline(reader, chunk_size, io_timeout)
        except TimeoutError:
            logger.debug(
                "No data within %.3fs after %d bytes",
                io_timeout,
                matcher.bytes_seen,
                extra={"diagnostic_tag": "match"},
            )
            return MatchOutcome.NO_MATCH_TIMEOUT

        if not chunk:
            return MatchOutcome.NO_MATCH
        if matcher.feed(chunk):
            logger.debug(
                "Matched after %d bytes",
                matcher.bytes_seen,
                extra={"diagnostic_tag": "match"},
            )
            return MatchOutcome.MATCHED


__all__ = [
    "MatchOutcome",
    "READ_CHUNK_SIZE",
    "StreamMatcher",
    "match_stream",
    "read_with_deadline",
]
