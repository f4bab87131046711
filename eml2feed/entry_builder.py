"""
Build normalized feed entries from parsed messages.

Each message yields a BuildResult instead of raising, so one bad message
never aborts a run: ignored messages are dropped silently, unmatched and
failed ones carry a reason for the caller to report.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime
from typing import Callable, Optional

from .content import (
    calculate_reading_time,
    extract_alternate_link,
    extract_body,
    rewrite,
    sanitize,
    truncate_html,
)
from .feed_resolver import FeedResolver
from .models import (
    BuildResult,
    Entry,
    EntryStatus,
    Feed,
    Message,
    ResolutionKind,
    User,
)

logger = logging.getLogger(__name__)

# Suffix Thunderbird appends to the ids of messages it synthesizes from feeds
SYNTHETIC_MESSAGE_ID_SUFFIX = "@localhost.localdomain"


def content_hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def entry_url(message: Message) -> str:
    """Canonical URL: Content-Base header, else the first alternate link."""
    if message.content_base:
        return message.content_base.strip()
    return extract_alternate_link(message.html)


def normalize_message_id(message_id: str) -> str:
    message_id = message_id.strip().strip("<>").strip()
    if message_id.endswith(SYNTHETIC_MESSAGE_ID_SUFFIX):
        message_id = message_id[: -len(SYNTHETIC_MESSAGE_ID_SUFFIX)]
    return message_id


def entry_hash(message: Message, url: str) -> str:
    """
    Identity hash of a message.

    The normalized message id wins; messages without one fall back to
    their URL. Returns an empty string when neither is available.
    """
    message_id = normalize_message_id(message.message_id)
    if message_id:
        return content_hash(message_id)
    if url:
        return content_hash(url)
    return ""


def entry_content(message: Message) -> str:
    if message.html:
        return extract_body(message.html)
    return message.text


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class EntryBuilder:
    """
    Turns messages into entries for one user.

    Either a default feed receives every message, or the resolver picks
    the feed from the entry URL.
    """

    def __init__(
        self,
        user: User,
        feed: Optional[Feed] = None,
        resolver: Optional[FeedResolver] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        if feed is None and resolver is None:
            raise ValueError("either a default feed or a feed resolver is required")
        self.user = user
        self.feed = feed
        self.resolver = resolver
        self.clock = clock

    def build(self, message: Message) -> BuildResult:
        try:
            return self._build(message)
        except Exception as e:
            logger.debug("Entry build failed", exc_info=True)
            return BuildResult.failed(f"unable to build entry: {e}")

    def _assign_feed(self, url: str):
        if self.feed is not None:
            return self.feed, None

        resolution = self.resolver.resolve(url)
        if resolution.kind == ResolutionKind.IGNORE:
            return None, BuildResult.ignored()
        if resolution.kind == ResolutionKind.NOT_FOUND:
            return None, BuildResult.not_found(f"feed not found for URL: {url}")
        return resolution.feed, None

    def _build(self, message: Message) -> BuildResult:
        url = entry_url(message)

        hash_ = entry_hash(message, url)
        if not hash_:
            return BuildResult.failed("empty identity: message has no id and no URL")

        feed, skipped = self._assign_feed(url)
        if skipped is not None:
            return skipped

        # Timestamps: the published date never runs ahead of the record itself
        if message.received_date is not None:
            created_at = _as_utc(message.received_date)
        else:
            created_at = self.clock()
        published_at = _as_utc(message.date) if message.date else created_at
        if published_at > created_at:
            published_at = created_at

        content = rewrite(url, entry_content(message), feed.rewrite_rules)
        content = sanitize(url, content).strip()

        title = message.subject.strip()
        if not title:
            title = truncate_html(content)
        if not title:
            title = url

        entry = Entry(
            user_id=self.user.id,
            feed_id=feed.id,
            hash=hash_,
            title=title,
            url=url,
            author=message.sender,
            content=content,
            published_at=published_at,
            created_at=created_at,
            changed_at=created_at,
            status=EntryStatus.UNREAD,
            reading_time=calculate_reading_time(content, self.user),
            tags=list(message.keywords),
            enclosures=[],
        )
        return BuildResult.built(entry)
