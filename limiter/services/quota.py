"""Quota policy and per-request decision values.

Windows are fixed and aligned to epoch multiples of the quota duration, not
to the first request an identity makes. All arithmetic is second-granular.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class Quota:
    """Admission policy: at most ``limit`` requests per ``within`` window.

    Attributes:
        limit: Maximum number of requests allowed per window (>= 0).
        within: Window duration; must be a positive whole number of seconds.

    Raises:
        ValueError: If limit is negative or within is not a positive whole
            number of seconds.
    """

    limit: int
    within: timedelta

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError("limit must be >= 0")
        if self.within <= timedelta(0):
            raise ValueError("within must be a positive duration")
        if self.within % timedelta(seconds=1):
            raise ValueError("within must be a whole number of seconds")

    @classmethod
    def per_seconds(cls, limit: int, seconds: int) -> "Quota":
        return cls(limit=limit, within=timedelta(seconds=seconds))

    @property
    def within_seconds(self) -> int:
        return int(self.within.total_seconds())

    def slot(self, now: float) -> int:
        """Return the index of the fixed window containing ``now``."""
        return int(now // self.within_seconds)

    def reset_at(self, now: float) -> int:
        """Return the epoch second at which the window containing ``now`` ends.

        Args:
            now: UNIX time in seconds, taken when the request arrives.

        Returns:
            Start of the next window, always strictly greater than ``now``.
        """
        return (self.slot(now) + 1) * self.within_seconds


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission decision.

    Attributes:
        denied: Whether the request exceeded the quota.
        reset_at: UNIX epoch seconds when the current window ends.
        remaining: Requests left in the window, never negative.
        identity: Identity the request was counted against.
        counter: Counter value after this request's increment.
        limit: Quota limit the decision was made against.
    """

    denied: bool
    reset_at: int
    remaining: int
    identity: str
    counter: int
    limit: int

    @classmethod
    def from_counter(cls, quota: Quota, identity: str, counter: int, now: float) -> "RateLimitResult":
        """Build the result for a post-increment counter value.

        A request that brings the counter to exactly ``limit`` is allowed;
        the first one past it is denied.
        """
        return cls(
            denied=counter > quota.limit,
            reset_at=quota.reset_at(now),
            remaining=max(quota.limit - counter, 0),
            identity=identity,
            counter=counter,
            limit=quota.limit,
        )

    @property
    def allowed(self) -> bool:
        return not self.denied

    def retry_after_seconds(self, now: float) -> int:
        """Seconds until the window resets, rounded up."""
        return max(0, int(math.ceil(self.reset_at - now)))
