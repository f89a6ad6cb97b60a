"""Exponential backoff with jitter for spacing probe attempts.

The base sequence doubles from ``minimum`` until it reaches ``maximum``.
With jitter enabled each delay is drawn from the band between the previous
base value and the current one, so delays stay non-decreasing and inside
``[minimum, maximum]`` while still spreading out concurrent waiters.

Once the base value reaches ``maximum`` the band collapses to
``[maximum, maximum]``: every later delay is exactly ``maximum``, so
waiters that have all reached the cap retry in lockstep. Jitter only
spreads the growth phase; randomizing below the cap would break the
non-decreasing guarantee.

Usage:
    from smlr.backoff import Backoff

    backoff = Backoff(minimum=0.5, maximum=3.0, jitter=True)
    delay = backoff.next()
"""

from __future__ import annotations

import random

DEFAULT_MIN_DELAY = 0.5
DEFAULT_MAX_DELAY = 3.0
DEFAULT_FACTOR = 2.0


class Backoff:
    """Stateful generator of inter-attempt delays, in seconds.

    Attributes:
        minimum: First and smallest delay.
        maximum: Upper clamp for every delay.
        factor: Growth multiplier per attempt (>= 1.0).
        jitter: Whether delays are randomized within the growth band.
        attempt: Number of delays produced so far.
    """

    def __init__(
        self,
        minimum: float = DEFAULT_MIN_DELAY,
        maximum: float = DEFAULT_MAX_DELAY,
        *,
        factor: float = DEFAULT_FACTOR,
        jitter: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the backoff generator.

        Args:
            minimum: First and smallest delay in seconds. Must be positive.
            maximum: Largest delay in seconds. Must be >= minimum.
            factor: Growth multiplier per attempt. Must be >= 1.0.
            jitter: Randomize delays within the growth band.
            rng: Optional random source, for deterministic tests.

        Raises:
            ValueError: If the bounds or factor are invalid.
        """
        if minimum <= 0:
            msg = f"minimum must be positive, got {minimum}"
            raise ValueError(msg)
        if maximum < minimum:
            msg = f"maximum ({maximum}) must be >= minimum ({minimum})"
            raise ValueError(msg)
        if factor < 1.0:
            msg = f"factor must be >= 1.0, got {factor}"
            raise ValueError(msg)

        self.minimum = minimum
        self.maximum = maximum
        self.factor = factor
        self.jitter = jitter
        self.attempt = 0
        self._rng = rng or random.Random()
        self._last = 0.0

    def _base(self, attempt: int) -> float:
        # Stop multiplying once clamped so large attempt counts never overflow.
        delay = self.minimum
        for _ in range(attempt):
            delay *= self.factor
            if delay >= self.maximum:
                return self.maximum
        return min(delay, self.maximum)

    def next(self) -> float:
        """Return the next delay and advance the sequence."""
        base = self._base(self.attempt)
        if self.jitter and self.attempt > 0:
            low = max(self._last, self._base(self.attempt - 1))
            delay = self._rng.uniform(low, base)
        else:
            delay = base
        delay = min(max(delay, self._last, self.minimum), self.maximum)

        self.attempt += 1
        self._last = delay
        return delay

    def __repr__(self) -> str:
        return (
            f"Backoff(minimum={self.minimum}, maximum={self.maximum}, "
            f"factor={self.factor}, jitter={self.jitter}, attempt={self.attempt})"
        )


__all__ = ["Backoff", "DEFAULT_FACTOR", "DEFAULT_MAX_DELAY", "DEFAULT_MIN_DELAY"]
