"""Order-independent, invertible checksums over multisets of byte strings."""

from .checksum import Setsum
from .shards import build_sharded, combine, setsum_of
from .state import (
    SETSUM_BYTES,
    SETSUM_BYTES_PER_COLUMN,
    SETSUM_COLUMNS,
    SETSUM_PRIMES,
    add_state,
    hash_to_state,
    invert_state,
    item_to_state,
)

__version__ = "0.1.0"

__all__ = [
    "Setsum",
    "build_sharded",
    "combine",
    "setsum_of",
    "SETSUM_BYTES",
    "SETSUM_BYTES_PER_COLUMN",
    "SETSUM_COLUMNS",
    "SETSUM_PRIMES",
    "add_state",
    "hash_to_state",
    "invert_state",
    "item_to_state",
]
