"""Column state for setsum checksums.

A state vector is a tuple of ``SETSUM_COLUMNS`` residues. Column ``i`` lives
in the additive group of integers modulo ``SETSUM_PRIMES[i]``; columns never
interact. Items are mapped into that group by hashing them and reading the
hash as little-endian 32-bit words.
"""

from __future__ import annotations

import hashlib
from typing import Callable

from blake3 import blake3

# The number of bytes in both the item hash and the setsum digest.
SETSUM_BYTES = 32
# Must evenly divide SETSUM_BYTES; the columns are read as 32-bit words.
SETSUM_BYTES_PER_COLUMN = 4
SETSUM_COLUMNS = SETSUM_BYTES // SETSUM_BYTES_PER_COLUMN
# One prime per column, each just below 2**32.
SETSUM_PRIMES: tuple[int, ...] = (
    4294967291,
    4294967279,
    4294967231,
    4294967197,
    4294967189,
    4294967161,
    4294967143,
    4294967111,
)

U32_MAX = 0xFFFFFFFF

EMPTY_STATE: tuple[int, ...] = (0,) * SETSUM_COLUMNS

State = tuple[int, ...]


def _sha256(item: bytes) -> bytes:
    return hashlib.sha256(item).digest()


def _blake3(item: bytes) -> bytes:
    return blake3(item).digest(length=SETSUM_BYTES)


HASHES: dict[str, Callable[[bytes], bytes]] = {
    "sha256": _sha256,
    "blake3": _blake3,
}

DEFAULT_HASH = "sha256"


def get_hash(hash_name: str) -> Callable[[bytes], bytes]:
    """Return the hash function registered under ``hash_name``."""
    try:
        return HASHES[hash_name]
    except KeyError:
        known = ", ".join(sorted(HASHES))
        raise ValueError(f"Unknown hash '{hash_name}' (expected one of: {known})") from None


def add_state(lhs: State, rhs: State) -> State:
    """Add two states column by column: ``(lhs[i] + rhs[i]) % P[i]``."""
    ret = []
    for lc, rc, prime in zip(lhs, rhs, SETSUM_PRIMES, strict=True):
        total = (lc + rc) % prime
        assert total <= U32_MAX
        ret.append(total)
    return tuple(ret)


def invert_state(state: State) -> State:
    """Return the additive inverse of ``state``.

    Adding the result to ``state`` with :func:`add_state` gives the all-zero
    state. A zero column stays zero rather than becoming the prime itself, so
    the result is always fully reduced and safe to serialize.
    """
    return tuple((prime - col) % prime for col, prime in zip(state, SETSUM_PRIMES, strict=True))


def hash_to_state(hash_bytes: bytes) -> State:
    """Translate a single hash into the internal representation of a setsum."""
    if len(hash_bytes) != SETSUM_BYTES:
        raise ValueError(
            f"hash must be exactly {SETSUM_BYTES} bytes, got {len(hash_bytes)}"
        )
    item_state = []
    for i, prime in enumerate(SETSUM_PRIMES):
        idx = i * SETSUM_BYTES_PER_COLUMN
        num = int.from_bytes(hash_bytes[idx:idx + SETSUM_BYTES_PER_COLUMN], "little")
        item_state.append(num % prime)
    return tuple(item_state)


def item_to_state(item: bytes, hash_name: str = DEFAULT_HASH) -> State:
    """Hash ``item`` and translate the hash into a state."""
    hasher = get_hash(hash_name)
    return hash_to_state(hasher(item))


def state_to_bytes(state: State) -> bytes:
    """Serialize ``state`` as concatenated little-endian column words."""
    return b"".join(col.to_bytes(SETSUM_BYTES_PER_COLUMN, "little") for col in state)


def bytes_to_state(digest: bytes) -> State:
    """Parse a serialized state, rejecting unreduced columns.

    Unlike :func:`hash_to_state` this does not reduce: a digest produced by a
    setsum always holds residues, so a column at or above its prime means the
    bytes did not come from a setsum with these primes.
    """
    if len(digest) != SETSUM_BYTES:
        raise ValueError(
            f"digest must be exactly {SETSUM_BYTES} bytes, got {len(digest)}"
        )
    state = []
    for i, prime in enumerate(SETSUM_PRIMES):
        idx = i * SETSUM_BYTES_PER_COLUMN
        col = int.from_bytes(digest[idx:idx + SETSUM_BYTES_PER_COLUMN], "little")
        if col >= prime:
            raise ValueError(f"digest column {i} is out of range for its prime")
        state.append(col)
    return tuple(state)
