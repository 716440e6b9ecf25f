"""
Centralized configuration management for the report scoring engine.

Provides environment-specific configuration with validation and type safety
using pydantic-settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseSettings):
    """
    Database configuration settings.

    The report engine only reads from the admin application's relational
    store. SQLite is used for local development and tests, PostgreSQL for the
    hosted store.

    Example:
        >>> db_config = DatabaseConfig(backend="sqlite", sqlite_path=":memory:")
        >>> db_config.get_connection_url()
        'sqlite:///:memory:'
    """

    backend: Literal["sqlite", "postgresql"] = Field("sqlite", description="Database backend type")

    # SQLite settings
    sqlite_path: str | None = Field("./talent_reports.db", description="SQLite database file path")

    # PostgreSQL settings
    postgres_host: str | None = Field("localhost", description="PostgreSQL host")
    postgres_port: int | None = Field(5432, ge=1, le=65535, description="PostgreSQL port")
    postgres_user: str | None = Field("postgres", description="PostgreSQL username")
    postgres_password: str | None = Field("", description="PostgreSQL password")
    postgres_database: str | None = Field("postgres", description="PostgreSQL database name")

    # Connection settings
    pool_pre_ping: bool = Field(True, description="Enable connection pool pre-ping")
    pool_recycle: int = Field(3600, ge=60, description="Connection pool recycle time (seconds)")
    echo: bool = Field(False, description="Enable SQL query logging")

    model_config = {"env_prefix": "DB_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def validate_sqlite_path(cls, v):
        """Ensure file-backed SQLite paths carry a .db suffix."""
        if v and v != ":memory:" and "." not in v.rsplit("/", 1)[-1]:
            v = f"{v}.db"
        return v

    @model_validator(mode="after")
    def validate_postgres_config(self):
        """Validate PostgreSQL configuration completeness."""
        if self.backend == "postgresql":
            missing = []
            if not self.postgres_host:
                missing.append("postgres_host")
            if not self.postgres_user:
                missing.append("postgres_user")
            if not self.postgres_database:
                missing.append("postgres_database")
            if missing:
                raise ValueError(f"PostgreSQL backend requires: {', '.join(missing)}")
        return self

    def get_connection_url(self) -> str:
        """
        Generate database connection URL.

        Raises:
            ValueError: If backend is unsupported
        """
        if self.backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        elif self.backend == "postgresql":
            password_part = f":{self.postgres_password}" if self.postgres_password else ""
            return (
                f"postgresql+psycopg://{self.postgres_user}{password_part}@{self.postgres_host}:"
                f"{self.postgres_port}/{self.postgres_database}"
            )
        else:
            raise ValueError(f"Unsupported database backend: {self.backend}")

    def get_engine_options(self) -> dict[str, Any]:
        """Get SQLAlchemy engine options."""
        options: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": self.pool_pre_ping}
        if self.backend != "sqlite":
            options["pool_recycle"] = self.pool_recycle
        return options


class LoggingConfig(BaseSettings):
    """Logging levels, output format and destination."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field(None, description="Log file path")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}


# Per-environment logging defaults, applied to fields no LOG_ variable sets.
ENVIRONMENT_LOGGING: dict[str, dict[str, Any]] = {
    "development": {"level": "DEBUG", "structured": False},
    "testing": {"level": "WARNING", "structured": False, "console_enabled": False},
    "production": {"level": "INFO", "structured": True},
}


class ReportConfig(BaseSettings):
    """
    Report scoring settings.

    Example:
        >>> ReportConfig().group_score_tolerance
        0.49
    """

    # Leader reports flag a dimension when the score falls below the batch
    # average minus this tolerance band.
    group_score_tolerance: float = Field(0.49, ge=0, description="Batch group-score tolerance")
    text_field_type: str = Field("text_input", description="Field type holding free-text answers")
    blocker_title_marker: str = Field("blocker", min_length=1, description="Blocker title marker")

    model_config = {"env_prefix": "REPORT_", "case_sensitive": False}


class ApplicationConfig(BaseSettings):
    """Top-level application settings."""

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    title: str = Field("Talent Reports", description="API title")
    version: str = Field("0.1.0", description="Application version")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled outside production."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


class Settings:
    """
    Complete application settings container.

    Provides structured access to all configuration sections with lazy
    loading.

    Example:
        >>> settings = get_settings()
        >>> settings.report.group_score_tolerance
        0.49
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._database: DatabaseConfig | None = None
        self._logging: LoggingConfig | None = None
        self._report: ReportConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def database(self) -> DatabaseConfig:
        if self._database is None:
            self._database = DatabaseConfig()
        return self._database

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            config = LoggingConfig()
            defaults = dict(ENVIRONMENT_LOGGING[self.app.environment])
            if self.app.debug:
                defaults["level"] = "DEBUG"
            unset = {k: v for k, v in defaults.items() if k not in config.model_fields_set}
            self._logging = config.model_copy(update=unset)
        return self._logging

    @property
    def report(self) -> ReportConfig:
        if self._report is None:
            self._report = ReportConfig()
        return self._report


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings instance (cached)."""
    return Settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
