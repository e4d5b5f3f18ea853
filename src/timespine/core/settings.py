"""
Centralized settings for timespine.

One validated, cached settings object.  All fields can be set through
``TIMESPINE_*`` environment variables (e.g. ``TIMESPINE_UPDATE_MODE=set``)
or a ``.env`` file.

The update mode lives here as an ordinary value: callers read it once and
hand it to :func:`timespine.reconcile.strategy.build_reconciler`.  The engine
itself never looks at the environment.

Tags:
    settings, configuration, pydantic, timespine
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class UpdateMode(str, Enum):
    """How reconciliations are executed."""

    NATIVE = "native"  # in-process, one timeline at a time
    SET = "set"  # delegated to the store's set-oriented batch operation


class TimespineSettings(BaseSettings):
    """timespine configuration.

    Fields
    ──────
    update_mode    : Reconciler strategy (native | set)
    batch_size     : Default sub-batch size for bulk reconciliation
    database_url   : SQLAlchemy URL for the reference SQL store
    database_echo  : Log all SQL
    lock_rows      : SELECT ... FOR UPDATE on history reads inside a transaction
    log_level      : Structlog log level
    log_json       : JSON logs (None = auto-detect from TTY)
    """

    model_config = SettingsConfigDict(
        env_prefix="TIMESPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Reconciliation ───────────────────────────────────────────
    update_mode: UpdateMode = Field(default=UpdateMode.NATIVE)
    batch_size: int = Field(default=1000, description="Items per bulk sub-batch")

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///timespine.db")
    database_echo: bool = Field(default=False)
    lock_rows: bool = Field(default=True)

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None)

    @field_validator("batch_size")
    @classmethod
    def _positive_batch_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("batch_size must be at least 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> TimespineSettings:
    """Return the process-wide settings (cached)."""
    return TimespineSettings()


def reset_settings() -> None:
    """Clear the settings cache (tests, config reloads)."""
    get_settings.cache_clear()


__all__ = [
    "TimespineSettings",
    "UpdateMode",
    "get_settings",
    "reset_settings",
]
