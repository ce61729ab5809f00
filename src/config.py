"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating values and providing actionable error messages.
"""

import logging
import os
from typing import TypeVar

import dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from sqllogger.sinks import validate_table_name

_T = TypeVar("_T", int, float)


def _get_env_str(name: str, default: str) -> str:
    """Read a string env var with a default."""
    value = os.getenv(name, "").strip()
    return value or default


def _get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false). Got: {raw!r}")


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


class LoggerConfig(BaseModel):
    """Configuration for the buffered log writer and its DuckDB sink."""

    database: str = Field(default="sqllogger.duckdb", description="DuckDB database path (or :memory:)")
    table: str = Field(default="logs", description="Log table name")

    max_entries: int = Field(default=16, description="Buffer size that triggers an immediate flush")
    flush_interval_s: float = Field(default=30.0, description="Scheduler tick period (seconds)")
    min_flush_interval_s: float = Field(default=60.0, description="Minimum time between timer flushes (seconds)")
    requeue_failed_batches: bool = Field(default=False, description="Retry failed batches instead of dropping them")

    diagnostics_level: str = Field(default="WARNING", description="Level of the writer's own diagnostics")

    @field_validator("database")
    def validate_database(cls, v: str) -> str:
        """Validate the database target is set."""
        if not v or not v.strip():
            raise ValueError("SQLLOGGER_DATABASE must not be empty.")
        return v.strip()

    @field_validator("table")
    def validate_table(cls, v: str) -> str:
        """Validate the table name is a plain SQL identifier."""
        try:
            return validate_table_name(v)
        except ValueError as exc:
            raise ValueError(f"SQLLOGGER_TABLE must be a plain SQL identifier. Got: {v!r}") from exc

    @field_validator("max_entries")
    def validate_max_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"SQLLOGGER_MAX_ENTRIES must be >= 1. Got: {v}")
        return v

    @field_validator("flush_interval_s", "min_flush_interval_s")
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Flush intervals must be > 0. Got: {v}")
        return v

    @field_validator("diagnostics_level")
    def validate_level(cls, v: str) -> str:
        """Validate the level is a known `logging` level name."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"SQLLOGGER_LOG_LEVEL must be a logging level name. Got: {v!r}")
        return level

    @model_validator(mode="after")
    def validate_intervals(self) -> "LoggerConfig":
        """The tick period must not exceed the minimum flush interval."""
        if self.flush_interval_s > self.min_flush_interval_s:
            raise ValueError(
                "SQLLOGGER_FLUSH_INTERVAL must be <= SQLLOGGER_MIN_FLUSH_INTERVAL "
                f"(got {self.flush_interval_s} > {self.min_flush_interval_s})."
            )
        return self


class Config(BaseModel):
    """Top-level application configuration."""

    logger: LoggerConfig = Field(default_factory=LoggerConfig, description="Log writer configuration")


def load_config() -> Config:
    """Load configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Raises `ValueError` with actionable messages for malformed values.
    """
    dotenv.load_dotenv()

    logger_cfg = LoggerConfig(
        database=_get_env_str("SQLLOGGER_DATABASE", "sqllogger.duckdb"),
        table=_get_env_str("SQLLOGGER_TABLE", "logs"),
        max_entries=_get_env_number("SQLLOGGER_MAX_ENTRIES", 16, int),
        flush_interval_s=_get_env_number("SQLLOGGER_FLUSH_INTERVAL", 30.0, float),
        min_flush_interval_s=_get_env_number("SQLLOGGER_MIN_FLUSH_INTERVAL", 60.0, float),
        requeue_failed_batches=_get_env_bool("SQLLOGGER_REQUEUE_FAILED", False),
        diagnostics_level=_get_env_str("SQLLOGGER_LOG_LEVEL", "WARNING"),
    )
    return Config(logger=logger_cfg)
