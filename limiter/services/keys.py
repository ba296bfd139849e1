"""Counter key derivation strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from limiter.core.config import DEFAULT_KEY_DELIMITER, DEFAULT_KEY_PREFIX


class KeyDeriver(ABC):
    """Maps ``(now, slot, identity)`` to the counter key in the store.

    Implementations must be pure and deterministic: the same slot and
    identity always yield the same key, and a different slot or identity
    always yields a different one.
    """

    @abstractmethod
    def derive(self, now: float, slot: int, identity: str) -> str:
        raise NotImplementedError


class DelimitedKeyDeriver(KeyDeriver):
    """Builds ``<prefix><delimiter><slot><delimiter><identity>`` keys.

    The slot is an integer and never contains the delimiter, so keys for
    different slots or identities cannot collide under a fixed prefix.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_KEY_PREFIX,
        delimiter: str = DEFAULT_KEY_DELIMITER,
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must be a non-empty string")
        if any(ch.isdigit() for ch in delimiter):
            raise ValueError("delimiter must not contain digits")
        self._prefix = prefix
        self._delimiter = delimiter

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def delimiter(self) -> str:
        return self._delimiter

    def derive(self, now: float, slot: int, identity: str) -> str:
        return f"{self._prefix}{self._delimiter}{slot}{self._delimiter}{identity}"

    def __repr__(self) -> str:
        return f"DelimitedKeyDeriver(prefix={self._prefix!r}, delimiter={self._delimiter!r})"
