# database engine and session utils
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .orm_models import SCHEMA_VERSION, Base, SchemaVersion

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Point plain PostgreSQL URLs at the psycopg3 driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


def create_db_engine(url: str) -> Engine:
    url = normalize_database_url(url)
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(url, future=True, connect_args=connect_args)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    sess = factory()
    try:
        yield sess
        sess.commit()
    except Exception:
        sess.rollback()
        raise
    finally:
        sess.close()


def init_db(engine: Engine) -> None:
    """
    Create all tables and stamp the schema version.

    Idempotent: existing tables are kept and the version row is only
    inserted once. Intended for local databases and tests; production
    databases are managed by the reader itself.
    """
    Base.metadata.create_all(engine)
    with session_scope(make_session_factory(engine)) as s:
        current = s.execute(select(SchemaVersion.version)).scalar()
        if current is None:
            s.add(SchemaVersion(version=SCHEMA_VERSION))
            logger.info(f"Database initialized at schema version {SCHEMA_VERSION}")
        else:
            logger.debug(f"Database already at schema version {current}")
