"""Build setsums for independent shards of data and combine them."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

from .checksum import Setsum
from .state import DEFAULT_HASH

logger = logging.getLogger(__name__)


def default_workers() -> int:
    """Worker count from ``SETSUM_WORKERS``, or 1 when unset."""
    raw = os.environ.get("SETSUM_WORKERS", "1")
    try:
        workers = int(raw)
    except ValueError:
        raise ValueError(f"SETSUM_WORKERS must be an integer, got '{raw}'") from None
    return max(workers, 1)


def setsum_of(items: Iterable[bytes], hash_name: str = DEFAULT_HASH) -> Setsum:
    """Return the setsum of ``items``."""
    setsum = Setsum(hash_name)
    setsum.update(items)
    return setsum


def combine(setsums: Iterable[Setsum], hash_name: str = DEFAULT_HASH) -> Setsum:
    """Add any number of setsums together."""
    total = Setsum(hash_name)
    for setsum in setsums:
        total += setsum
    return total


def build_sharded(
    shards: Iterable[Iterable[bytes]],
    workers: int | None = None,
    hash_name: str = DEFAULT_HASH,
) -> Setsum:
    """Build one setsum per shard and return their sum.

    Shards are consumed on a thread pool and folded in as they finish; the
    result does not depend on completion order.
    """
    if workers is None:
        workers = default_workers()
    shards = list(shards)
    if workers <= 1 or len(shards) <= 1:
        return combine((setsum_of(shard, hash_name) for shard in shards), hash_name)

    total = Setsum(hash_name)
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futs = [ex.submit(setsum_of, shard, hash_name) for shard in shards]
        for done, f in enumerate(as_completed(futs), start=1):
            total += f.result()
            logger.debug("shard %d/%d folded in", done, len(futs))
    return total
