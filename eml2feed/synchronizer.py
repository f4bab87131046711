"""
Batched synchronization of entries with the store.

Entries are committed in contiguous batches of a fixed size. A failing
batch is retried from scratch after a delay; once every attempt has
failed the whole operation stops, and batches already committed stay
committed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional, Sequence, TypeVar

from .errors import SyncError
from .logging_config import log_timing
from .models import Entry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 1000


# =============================================================================
# RETRY LOGIC
# =============================================================================


@dataclass
class RetryConfig:
    """Configuration for database batch retries."""

    max_attempts: int = 10
    base_delay_seconds: float = 10.0
    max_delay_seconds: float = 300.0
    exponential_backoff: bool = False


def calculate_retry_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay before next retry attempt."""
    if config.exponential_backoff:
        delay = config.base_delay_seconds * (2**attempt)
    else:
        delay = config.base_delay_seconds
    return min(delay, config.max_delay_seconds)


# =============================================================================
# PARTITIONING
# =============================================================================


def partition(items: Sequence[T], size: int) -> List[List[T]]:
    """
    Split items into contiguous batches of size (the last may be shorter).

    Example:
        >>> partition([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError("batch size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def group_by(
    items: Sequence[T], key: Callable[[T], Hashable]
) -> Dict[Hashable, List[T]]:
    """Group items by key, keeping first-seen group order and item order."""
    groups: Dict[Hashable, List[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


@dataclass
class SyncStats:
    """Counters for one synchronization operation."""

    processed: int = 0
    batches: int = 0
    failed_attempts: int = 0
    # Rows the store reported as changed, when it reports a count
    affected: int = 0


class BatchSynchronizer:
    """Apply entries to a store in bounded, independently retried batches."""

    def __init__(
        self,
        store,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_config: Optional[RetryConfig] = None,
        progress: Optional[Callable[[int], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.retry_config = retry_config or RetryConfig()
        if self.retry_config.max_attempts < 1:
            raise ValueError("retry attempts must be positive")
        self.progress = progress
        self.sleep = sleep

    @staticmethod
    def _check_identities(entries: Sequence[Entry]) -> None:
        for entry in entries:
            if not entry.hash:
                raise ValueError(
                    f"entry without identity hash cannot be synchronized: {entry.url!r}"
                )

    def _run_batch(
        self,
        proc: Callable[[List[Entry]], object],
        batch: List[Entry],
        stats: SyncStats,
    ) -> object:
        config = self.retry_config
        last_error: Optional[Exception] = None

        for attempt in range(config.max_attempts):
            try:
                return proc(batch)
            except Exception as e:
                last_error = e
                stats.failed_attempts += 1
                if attempt < config.max_attempts - 1:
                    delay = calculate_retry_delay(attempt, config)
                    logger.warning(
                        f"Database transaction failed: {e}. Retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{config.max_attempts})"
                    )
                    self.sleep(delay)

        raise SyncError(
            f"batch of {len(batch)} entries failed after "
            f"{config.max_attempts} attempts: {last_error}",
            last_error,
        ) from last_error

    def _run(
        self,
        groups: Dict[Hashable, List[Entry]],
        make_proc: Callable[[Hashable], Callable[[List[Entry]], object]],
    ) -> SyncStats:
        stats = SyncStats()
        for key, group in groups.items():
            proc = make_proc(key)
            for batch in partition(group, self.batch_size):
                result = self._run_batch(proc, batch, stats)
                if isinstance(result, int):
                    stats.affected += result
                stats.batches += 1
                stats.processed += len(batch)
                logger.info(
                    f"Processed entries (DB): {stats.processed}",
                    extra={"entries_count": stats.processed},
                )
                if self.progress is not None:
                    self.progress(stats.processed)
        return stats

    @log_timing(operation="Entry upsert")
    def sync_upsert(self, entries: Sequence[Entry], overwrite: bool = False) -> SyncStats:
        """
        Insert entries, updating existing ones when overwrite is set.

        Batches never mix owners: entries are grouped by (user, feed) first.

        Raises:
            ValueError: If an entry has an empty identity hash
            SyncError: If a batch fails on every attempt
        """
        self._check_identities(entries)

        def make_proc(key):
            user_id, feed_id = key
            return lambda batch: self.store.refresh_feed_entries(
                user_id, feed_id, batch, overwrite
            )

        return self._run(group_by(entries, lambda e: (e.user_id, e.feed_id)), make_proc)

    @log_timing(operation="Entry removal")
    def sync_delete(self, entries: Sequence[Entry]) -> SyncStats:
        """
        Delete stored entries matching the identity hashes of entries.

        SyncStats.affected holds the number of rows actually deleted.

        Raises:
            ValueError: If an entry has an empty identity hash
            SyncError: If a batch fails on every attempt
        """
        self._check_identities(entries)

        def make_proc(user_id):
            return lambda batch: self.store.delete_entries_by_hash(
                user_id, [entry.hash for entry in batch]
            )

        return self._run(group_by(entries, lambda e: e.user_id), make_proc)
