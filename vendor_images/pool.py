from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from loguru import logger

from .pipeline_types import CatalogEntry, Resolution
from .resolve import ResolverContext, resolve_entry_safely

T = TypeVar("T")
R = TypeVar("R")


class _Cursor:
    """Shared index handed out to workers, one position at a time."""

    def __init__(self, size: int) -> None:
        self._size = size
        self._next = 0
        self._lock = threading.Lock()

    def take(self) -> Optional[int]:
        with self._lock:
            if self._next >= self._size:
                return None
            index = self._next
            self._next += 1
            return index


def run_pool(items: Sequence[T], worker: Callable[[T, int], R], concurrency: int = 4) -> List[R]:
    """
    Run ``worker(item, index)`` over ``items`` on ``concurrency`` threads.

    Each thread takes the next index from a shared cursor and runs the
    worker to completion before taking another. Results land in the slot
    of their input index, whatever the completion order.
    """
    if not items:
        return []
    results: List[Optional[R]] = [None] * len(items)
    cursor = _Cursor(len(items))

    def runner() -> None:
        while True:
            index = cursor.take()
            if index is None:
                return
            results[index] = worker(items[index], index)

    n_workers = max(1, min(concurrency, len(items)))
    with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="resolver") as pool:
        futures = [pool.submit(runner) for _ in range(n_workers)]
        for f in futures:
            f.result()
    return results  # type: ignore[return-value]


def needs_resolution(entry: CatalogEntry, overrides) -> bool:
    return bool(entry.official_url) or bool(entry.id and entry.id in overrides)


def resolve_all(
    entries: Sequence[CatalogEntry],
    ctx: ResolverContext,
    concurrency: Optional[int] = None,
) -> Dict[str, Resolution]:
    """
    Direct-resolution pass over every entry that has an override or an
    official URL. Returns resolutions keyed by entry identity.
    """
    pending = [e for e in entries if needs_resolution(e, ctx.overrides)]
    total = len(pending)
    workers = concurrency or ctx.settings.concurrency
    logger.info("Resolving images for {} of {} entries with {} workers", total, len(entries), workers)

    def work(entry: CatalogEntry, index: int) -> Resolution:
        return resolve_entry_safely(entry, ctx, label=f"{index + 1}/{total} {entry.label}")

    results = run_pool(pending, work, workers)
    return {r.key: r for r in results}
