"""
One import run, start to finish.

Reads messages (or a previous JSON dump), builds entries, then applies
the requested post-processing: mark read, dump, remove and upsert.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from . import dump
from .eml import iter_message_files, load_message
from .entry_builder import EntryBuilder
from .errors import ConfigError, MessageError
from .feed_index import FeedIndex
from .feed_resolver import FeedResolver
from .logging_config import log_timing
from .models import BuildOutcome, Entry, EntryStatus, User
from .settings import ImportConfig, MessageType
from .store import Store
from .synchronizer import BatchSynchronizer

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 1000


@dataclass
class RunStats:
    """Counters reported at the end of a run."""

    read: int = 0
    built: int = 0
    ignored: int = 0
    not_found: int = 0
    failed: int = 0
    removed: int = 0
    stored: int = 0


class ImportApp:
    """Drives an import run against an already verified store."""

    def __init__(
        self,
        config: ImportConfig,
        store: Store,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.store = store
        self.sleep = sleep
        self.stats = RunStats()
        self.user: Optional[User] = None
        self.builder: Optional[EntryBuilder] = None
        self.entries: List[Entry] = []

    def init(self) -> None:
        """
        Resolve the user and the feed routing for EML input.

        Raises:
            UserNotFoundError: If the user does not exist
            LoadError: If feeds cannot be loaded
            RuleParseError: If the feed map file is invalid
            ConfigError: If the default feed is not one of the user's feeds
        """
        config = self.config
        if not config.reads_messages:
            return

        self.user = self.store.user_by_username(config.username)
        index = FeedIndex.load(self.store, self.user.id)

        if config.feed_map_file:
            resolver = FeedResolver.load_rules(config.feed_map_file, index)
            self.builder = EntryBuilder(self.user, resolver=resolver)
        else:
            feed = index.feed_by_url(config.feed_url)
            if feed is None:
                raise ConfigError(f"unable to find feed with URL '{config.feed_url}'")
            self.builder = EntryBuilder(self.user, feed=feed)

    @log_timing(operation="Entry loading")
    def load_entries(self) -> List[Entry]:
        if self.config.message_type == MessageType.JSON:
            self.entries = self._load_dump()
        else:
            self.entries = self._build_from_messages()
        return self.entries

    def _load_dump(self) -> List[Entry]:
        entries = []
        for entry in dump.load_entries(self.config.message_path):
            if not entry.hash:
                logger.warning(f"Skipping dumped entry without identity hash: {entry.url}")
                continue
            entries.append(entry)
        self.stats.read = len(entries)
        self.stats.built = len(entries)
        logger.info(f"Loaded {len(entries)} entries from {self.config.message_path}")
        return entries

    def _build_from_messages(self) -> List[Entry]:
        if self.builder is None:
            raise RuntimeError("init() must run before loading messages")

        stats = self.stats
        entries = []
        for path in iter_message_files(self.config.message_path):
            stats.read += 1
            try:
                message = load_message(path)
            except MessageError as e:
                stats.failed += 1
                logger.warning(f"Skipping {path}: {e}")
                continue

            result = self.builder.build(message)
            if result.outcome == BuildOutcome.BUILT:
                stats.built += 1
                entries.append(result.entry)
            elif result.outcome == BuildOutcome.IGNORED:
                stats.ignored += 1
            elif result.outcome == BuildOutcome.NOT_FOUND:
                stats.not_found += 1
                if not self.config.quiet:
                    logger.warning(f"{path}: {result.reason}")
            else:
                stats.failed += 1
                logger.warning(f"{path}: {result.reason}")

            if stats.read % PROGRESS_EVERY == 0:
                logger.info(
                    f"Processed messages: {stats.read}",
                    extra={"messages_count": stats.read},
                )

        logger.info(
            f"Built {stats.built} entries from {stats.read} messages "
            f"({stats.ignored} ignored, {stats.not_found} without feed, {stats.failed} failed)",
            extra={"messages_count": stats.read, "entries_count": stats.built},
        )
        return entries

    def mark_read(self) -> None:
        for entry in self.entries:
            entry.status = EntryStatus.READ
        logger.info(f"Marked {len(self.entries)} entries as read")

    def synchronize(self) -> None:
        config = self.config
        sync = BatchSynchronizer(
            self.store,
            batch_size=config.batch_size,
            retry_config=config.retry_config(),
            sleep=self.sleep,
        )

        if config.remove:
            self.stats.removed = sync.sync_delete(self.entries).affected

        sync.sync_upsert(self.entries, overwrite=config.update)
        self.stats.stored = sum(1 for entry in self.entries if entry.id is not None)

    def run(self) -> RunStats:
        config = self.config
        self.init()
        self.load_entries()

        if config.mark_read:
            self.mark_read()

        if config.dump_file:
            dump.dump_entries(self.entries, config.dump_file)

        if config.dry_run:
            logger.info("Dry run: database left untouched")
        else:
            self.synchronize()

        return self.stats


def run_import(config: ImportConfig, sleep: Callable[[float], None] = time.sleep) -> RunStats:
    """
    Connect to the database described by config and run one import.

    Raises:
        Eml2FeedError: Any run-aborting failure
    """
    store = Store.from_url(config.database_url)
    try:
        store.ping()
        store.check_schema()
        return ImportApp(config, store, sleep=sleep).run()
    finally:
        store.close()
