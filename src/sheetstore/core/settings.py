"""Runtime settings for sheetstore.

Quota accounting, sheet naming conventions and logging are all tunable from
the environment so that the same code can run against a production grid
service and against the in-memory backend in tests.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at construction
    - **Environment-driven:** ``SHEETSTORE_`` env vars and ``.env`` files
    - **Sensible defaults:** Match the grid service's published quota

Examples:
    >>> from sheetstore.core.settings import SheetStoreSettings
    >>> settings = SheetStoreSettings(quota_limit=50)
    >>> settings.quota_window_seconds
    100

Tags:
    settings, configuration, pydantic, environment, sheetstore
"""

from __future__ import annotations

import re
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SheetStoreSettings(BaseSettings):
    """Settings shared by the manager, throttle and tables.

    Fields
    ──────
    quota_limit             : Requests allowed per window before throttling
    quota_window_seconds    : Length of one quota window
    quota_utc_offset_hours  : Fixed zone the windows are anchored in
    block_on_quota          : Default blocking mode for quota reservations
    quota_wait_timeout      : Upper bound on one blocking wait (None = no bound)
    database_prefix         : Title prefix of managed containers
    reserved_sheet_pattern  : Regex of default sheet titles that are not tables
    max_columns             : Widest header scanned when discovering a table
    log_level               : Structlog log level
    json_logs               : JSON logs (True), console (False), auto (None)
    """

    model_config = SettingsConfigDict(
        env_prefix="SHEETSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Quota ────────────────────────────────────────────────────
    quota_limit: int = Field(default=90, ge=1)
    quota_window_seconds: int = Field(default=100, ge=1)
    quota_utc_offset_hours: int = Field(default=-7, ge=-12, le=14)
    block_on_quota: bool = True
    quota_wait_timeout: float | None = Field(default=None, ge=0)

    # ── Naming ───────────────────────────────────────────────────
    database_prefix: str = "database_file_"
    reserved_sheet_pattern: str = r"Sheet\d*"
    max_columns: int = Field(default=256, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("reserved_sheet_pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid reserved_sheet_pattern: {exc}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return upper


@lru_cache(maxsize=1)
def get_settings() -> SheetStoreSettings:
    """Process-wide settings, read from the environment once."""
    return SheetStoreSettings()


__all__ = ["SheetStoreSettings", "get_settings"]
