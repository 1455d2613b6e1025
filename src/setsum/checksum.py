"""The Setsum object: an order-independent, invertible multiset checksum.

Two setsums are equal with high probability if and only if they were built
from the same multiset of items. Items can be removed as cheaply as they are
inserted, and whole setsums can be added or subtracted without revisiting the
items behind them.
"""

from __future__ import annotations

from typing import Iterable

from .state import (
    DEFAULT_HASH,
    EMPTY_STATE,
    SETSUM_BYTES,
    State,
    add_state,
    bytes_to_state,
    get_hash,
    invert_state,
    item_to_state,
    state_to_bytes,
)


class Setsum:
    """Running checksum over a multiset of byte strings.

    ``hash_name`` selects the function items are hashed with. Setsums built
    with different hashes describe unrelated values and refuse to combine.
    """

    __slots__ = ("_state", "hash_name")

    # Mutable value: equal setsums may not stay equal.
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, hash_name: str = DEFAULT_HASH) -> None:
        get_hash(hash_name)
        self.hash_name = hash_name
        self._state: State = EMPTY_STATE

    @classmethod
    def _from_state(cls, state: State, hash_name: str) -> "Setsum":
        obj = cls(hash_name)
        obj._state = state
        return obj

    @classmethod
    def from_digest(cls, digest: bytes, hash_name: str = DEFAULT_HASH) -> "Setsum":
        """Rebuild a setsum from the bytes returned by :meth:`digest`."""
        return cls._from_state(bytes_to_state(memoryview(digest)), hash_name)

    @classmethod
    def from_hexdigest(cls, hexdigest: str, hash_name: str = DEFAULT_HASH) -> "Setsum":
        """Rebuild a setsum from the string returned by :meth:`hexdigest`."""
        try:
            digest = bytes.fromhex(hexdigest.strip())
        except ValueError:
            raise ValueError(f"'{hexdigest}' is not a hex digest") from None
        return cls.from_digest(digest, hash_name)

    @property
    def state(self) -> State:
        return self._state

    def insert(self, item: bytes) -> None:
        """Insert ``item``. Inserting it again counts it twice."""
        item_state = item_to_state(item, self.hash_name)
        self._state = add_state(self._state, item_state)

    def remove(self, item: bytes) -> None:
        """Remove one occurrence of ``item``.

        Nothing checks that the item was inserted. Removing an absent item
        leaves a placeholder that consumes the next insert of that item;
        several placeholders can accrue and all of them must be consumed
        before the setsum matches one in which the item was inserted.
        """
        item_state = invert_state(item_to_state(item, self.hash_name))
        self._state = add_state(self._state, item_state)

    def update(self, items: Iterable[bytes]) -> None:
        """Insert every item in ``items``."""
        for item in items:
            self.insert(item)

    def discard_all(self, items: Iterable[bytes]) -> None:
        """Remove every item in ``items``."""
        for item in items:
            self.remove(item)

    def digest(self) -> bytes:
        """Return the 32-byte little-endian serialization of the state."""
        digest = state_to_bytes(self._state)
        assert len(digest) == SETSUM_BYTES
        return digest

    def hexdigest(self) -> str:
        return self.digest().hex()

    def copy(self) -> "Setsum":
        return self._from_state(self._state, self.hash_name)

    def is_empty(self) -> bool:
        """True when the state is zero, i.e. every insert has been cancelled."""
        return self._state == EMPTY_STATE

    def _check_compatible(self, other: "Setsum") -> None:
        if other.hash_name != self.hash_name:
            raise ValueError(
                f"cannot combine a '{self.hash_name}' setsum with a "
                f"'{other.hash_name}' setsum"
            )

    def add(self, other: "Setsum") -> "Setsum":
        """Return the setsum of the union of both multisets."""
        self._check_compatible(other)
        return self._from_state(add_state(self._state, other._state), self.hash_name)

    def subtract(self, other: "Setsum") -> "Setsum":
        """Return the setsum of this multiset minus ``other``'s multiset."""
        self._check_compatible(other)
        state = add_state(self._state, invert_state(other._state))
        return self._from_state(state, self.hash_name)

    def __add__(self, other: object) -> "Setsum":
        if not isinstance(other, Setsum):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other: object) -> "Setsum":
        # Lets sum() start from its default of 0.
        if isinstance(other, int) and other == 0:
            return self.copy()
        return NotImplemented

    def __sub__(self, other: object) -> "Setsum":
        if not isinstance(other, Setsum):
            return NotImplemented
        return self.subtract(other)

    def __iadd__(self, other: object) -> "Setsum":
        if not isinstance(other, Setsum):
            return NotImplemented
        self._check_compatible(other)
        self._state = add_state(self._state, other._state)
        return self

    def __isub__(self, other: object) -> "Setsum":
        if not isinstance(other, Setsum):
            return NotImplemented
        self._check_compatible(other)
        self._state = add_state(self._state, invert_state(other._state))
        return self

    def __neg__(self) -> "Setsum":
        return self._from_state(invert_state(self._state), self.hash_name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Setsum):
            return NotImplemented
        return self.hash_name == other.hash_name and self._state == other._state

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __repr__(self) -> str:
        return f"Setsum({self.hash_name}:{self.hexdigest()})"
