from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from talent_reports.domain.ports import ReportDataSource
from talent_reports.infrastructure.config import DatabaseConfig, ReportConfig, get_settings
from talent_reports.infrastructure.db import create_database_engine, create_session_factory
from talent_reports.infrastructure.repositories import SqlReportDataSource


def get_db_config(request: Request) -> DatabaseConfig:
    config = getattr(request.app.state, "db_config", None)
    if config is None:
        config = get_settings().database
        request.app.state.db_config = config
    return config


def get_report_config() -> ReportConfig:
    return get_settings().report


def get_session_factory(request: Request) -> sessionmaker[Session]:
    cached_factory = getattr(request.app.state, "session_factory", None)
    if cached_factory is not None:
        return cached_factory

    engine = create_database_engine(get_db_config(request))
    session_factory = create_session_factory(engine)
    request.app.state.session_factory = session_factory
    return session_factory


def get_db_session(request: Request) -> Generator[Session, None, None]:
    session_factory = get_session_factory(request)
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def get_data_source(db: Session = Depends(get_db_session)) -> ReportDataSource:
    return SqlReportDataSource(db)
