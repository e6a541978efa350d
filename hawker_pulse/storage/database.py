"""
Hawker Pulse - Database Engine

Engine and session factory construction from the `database` config section.

Usage:
    from hawker_pulse.storage.database import create_db_engine, init_db

    engine = create_db_engine()
    init_db(engine)
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.storage.models import Base

logger = logging.getLogger(__name__)


def create_db_engine(config: Settings | None = None, url: str | None = None) -> Engine:
    """
    Create an engine for the configured database.

    SQLite engines are made usable from the ingestion worker threads, and an
    in-memory SQLite database is shared by all connections.
    """
    config = config or get_config()
    url = url or config.database.url
    parsed = make_url(url)

    kwargs: dict = {"echo": config.database.echo}
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        database = parsed.database
        if not database or database == ":memory:":
            kwargs["poolclass"] = StaticPool
        else:
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, **kwargs)

    if parsed.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.debug(f"Created database engine for {parsed.render_as_string(hide_password=True)}")
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def is_single_connection(engine: Engine) -> bool:
    """True when every session shares one DBAPI connection (in-memory SQLite)."""
    return isinstance(engine.pool, StaticPool)


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory whose objects stay readable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Database schema initialized")
