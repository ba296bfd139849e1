"""Counter store interfaces.

The limiter depends on these abstractions (not the concrete backend) so the
shared store can be swapped without touching the decision engine.

Two shapes exist:
- ``CounterStore``: one atomic increment-and-expire call per request.
- ``TwoStepCounterStore``: a read followed by a separate increment, for
  backends that cannot return the incremented value from the same
  transaction. Best-effort under concurrency; see its docstring.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CounterStore(ABC):
    """Shared per-key counter with TTL-based expiry.

    Attributes:
        atomic: True when the increment and the expiry re-arm execute as one
            indivisible operation on the backend.
    """

    atomic: bool = True

    @abstractmethod
    async def check_and_increment(self, key: str, window_seconds: int) -> int:
        """Add one to ``key`` and (re)arm its expiry to ``window_seconds``.

        Args:
            key: Opaque counter key.
            window_seconds: TTL applied to the key, in whole seconds.

        Returns:
            The counter value after this increment.

        Raises:
            StoreUnavailableError: If the backend is unreachable or the
                operation fails. The increment must then be assumed lost.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources. No-op by default."""


class TwoStepCounterStore(CounterStore):
    """Counter store built from a plain read and a separate increment.

    The count returned is ``get(key) + 1``: the increment is treated as
    committed even though concurrent requests may interleave between the two
    round trips. Two requests racing on the same key can therefore observe
    the same count, which admits slightly more than ``limit`` requests in
    the worst case. Increments themselves are never lost, so the counter
    converges for subsequent requests.
    """

    atomic = False

    @abstractmethod
    async def get(self, key: str) -> int:
        """Return the current count for ``key`` (0 when absent).

        Must not extend the key's expiry.
        """
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> None:
        """Add one to ``key`` and (re)arm its expiry in one transaction."""
        raise NotImplementedError

    async def check_and_increment(self, key: str, window_seconds: int) -> int:
        current = await self.get(key)
        await self.increment(key, window_seconds)
        return current + 1
