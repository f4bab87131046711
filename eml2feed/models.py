from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

# Reading speeds used when a user row carries none
DEFAULT_READING_SPEED = 265  # words per minute
DEFAULT_CJK_READING_SPEED = 500  # characters per minute


@dataclass(frozen=True)
class User:
    """Owner of feeds and entries. Loaded once per run."""

    id: int
    username: str
    default_reading_speed: int = DEFAULT_READING_SPEED
    cjk_reading_speed: int = DEFAULT_CJK_READING_SPEED


@dataclass(frozen=True)
class Feed:
    """Subscribed feed. rewrite_rules keeps the operator's rule order."""

    id: int
    user_id: int
    feed_url: str
    title: str = ""
    rewrite_rules: str = ""


@dataclass(frozen=True)
class Message:
    """One parsed email message, as read from an EML file."""

    subject: str = ""
    sender: str = ""
    html: str = ""
    text: str = ""
    message_id: str = ""
    content_base: str = ""
    date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    keywords: Tuple[str, ...] = field(default_factory=tuple)


class EntryStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
    REMOVED = "removed"


class Entry(BaseModel):
    """Normalized feed entry, the unit of synchronization."""

    id: Optional[int] = Field(None, description="Database id, set once stored")
    user_id: int
    feed_id: int
    hash: str = Field(..., description="Identity hash used to reconcile entries")
    title: str = ""
    url: str = ""
    author: str = ""
    content: str = ""
    published_at: datetime
    created_at: datetime
    changed_at: datetime
    status: EntryStatus = EntryStatus.UNREAD
    reading_time: int = 0
    tags: List[str] = Field(default_factory=list)
    enclosures: List[dict] = Field(default_factory=list)

    @field_validator("reading_time")
    @classmethod
    def validate_reading_time(cls, v):
        if v < 0:
            raise ValueError("reading_time must not be negative")
        return v


class ResolutionKind(str, Enum):
    FEED = "feed"
    IGNORE = "ignore"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Resolution:
    """Outcome of matching an entry URL against the feed map."""

    kind: ResolutionKind
    feed: Optional[Feed] = None

    @classmethod
    def found(cls, feed: Feed) -> "Resolution":
        return cls(ResolutionKind.FEED, feed)

    @classmethod
    def ignore(cls) -> "Resolution":
        return cls(ResolutionKind.IGNORE)

    @classmethod
    def not_found(cls) -> "Resolution":
        return cls(ResolutionKind.NOT_FOUND)


class BuildOutcome(str, Enum):
    BUILT = "built"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class BuildResult:
    """Result of turning one message into an entry.

    Exactly one of entry (BUILT) or reason (NOT_FOUND, FAILED) is set.
    IGNORED carries neither.
    """

    outcome: BuildOutcome
    entry: Optional[Entry] = None
    reason: Optional[str] = None

    @classmethod
    def built(cls, entry: Entry) -> "BuildResult":
        return cls(BuildOutcome.BUILT, entry=entry)

    @classmethod
    def ignored(cls) -> "BuildResult":
        return cls(BuildOutcome.IGNORED)

    @classmethod
    def not_found(cls, reason: str) -> "BuildResult":
        return cls(BuildOutcome.NOT_FOUND, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "BuildResult":
        return cls(BuildOutcome.FAILED, reason=reason)
