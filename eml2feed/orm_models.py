"""
SQLAlchemy ORM models for the feed reader database.

Defines the subset of the reader schema this tool reads and writes,
portable between SQLite and PostgreSQL.

Tables:
- User: account owning feeds and entries
- Feed: subscribed feed with its rewrite rules
- Entry: stored article, unique per (feed, hash)
- SchemaVersion: single-row marker checked before any import
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from .models import DEFAULT_CJK_READING_SPEED, DEFAULT_READING_SPEED

# Schema version this tool was written against
SCHEMA_VERSION = 1


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Reader account."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(Text, unique=True, nullable=False)
    default_reading_speed = Column(Integer, default=DEFAULT_READING_SPEED)
    cjk_reading_speed = Column(Integer, default=DEFAULT_CJK_READING_SPEED)

    feeds = relationship("Feed", back_populates="user", cascade="all, delete-orphan")


class Feed(Base):
    """Subscribed RSS/Atom feed."""

    __tablename__ = "feeds"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    feed_url = Column(Text, nullable=False)
    title = Column(Text, default="")
    rewrite_rules = Column(Text, default="")

    user = relationship("User", back_populates="feeds")
    entries = relationship("Entry", back_populates="feed", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("user_id", "feed_url", name="uq_feeds_user_url"),
    )


class Entry(Base):
    """Article stored for a feed."""

    __tablename__ = "entries"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    feed_id = Column(Integer, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False)
    hash = Column(String(64), nullable=False)
    title = Column(Text, default="")
    url = Column(Text, default="")
    author = Column(Text, default="")
    content = Column(Text, default="")
    published_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    changed_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    status = Column(String(20), default="unread", nullable=False)
    reading_time = Column(Integer, default=0)
    tags = Column(JSON, default=list)

    feed = relationship("Feed", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("feed_id", "hash", name="uq_entries_feed_hash"),
        Index("idx_entries_user_hash", "user_id", "hash"),
        Index("idx_entries_user_status", "user_id", "status"),
    )


class SchemaVersion(Base):
    """Version marker of the database schema."""

    __tablename__ = "schema_version"

    version = Column(Integer, primary_key=True)
