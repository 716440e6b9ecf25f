"""
Database connection and session management with centralized configuration.

The report engine never writes; sessions are opened per request and closed
without committing.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import DatabaseConfig, get_settings
from .exceptions import handle_database_error
from .logging import get_logger

logger = get_logger(__name__)


def create_database_engine(config: DatabaseConfig | None = None) -> Engine:
    """
    Create SQLAlchemy engine with proper configuration.

    Example:
        >>> engine = create_database_engine(DatabaseConfig(sqlite_path=":memory:"))
    """
    if config is None:
        config = get_settings().database

    connection_url = config.get_connection_url()
    engine_options = config.get_engine_options()

    logger.info(f"Creating database engine for {config.backend} backend")
    logger.debug(f"Connection URL: {connection_url.split('@')[0]}@***")  # Hide credentials in logs

    try:
        engine = create_engine(connection_url, **engine_options)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database engine: {str(e)}")
        raise handle_database_error(e, "create_engine") from e
    logger.info("Database engine created successfully")
    return engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory bound to ``engine``."""
    if engine is None:
        engine = create_database_engine()

    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def read_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Open a read-only session; anything pending is rolled back on exit."""
    s = session_factory()
    try:
        yield s
    finally:
        s.rollback()
        s.close()
