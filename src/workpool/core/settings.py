"""Environment-driven defaults for workpool.

``WorkpoolSettings`` holds the knobs a deployment usually wants to tune
without touching code: how many workers a processor runs, the total-run
and per-task timeouts, and how logs are rendered.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** A zero worker count fails at load time
    - **Environment-driven:** ``WORKPOOL_*`` variables and ``.env`` files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> import os
    >>> os.environ["WORKPOOL_WORKERS"] = "8"
    >>> get_settings(_force_reload=True).workers
    8

Tags:
    settings, configuration, pydantic, environment, workpool
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkpoolSettings(BaseSettings):
    """Workpool configuration.

    Fields
    ──────
    workers        : Default worker count for processors and batches
    total_timeout  : Whole-run deadline for a job processor (None = unbounded)
    task_timeout   : Per-task deadline for fan-out batches
    log_level      : Structlog log level
    log_json       : Force JSON (True) or console (False) rendering
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKPOOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Pool ─────────────────────────────────────────────────────
    workers: int = Field(default=4, ge=1)
    total_timeout: float | None = Field(
        default=None,
        ge=0,
        description="Seconds before a job processor's context expires",
    )
    task_timeout: float = Field(default=30.0, gt=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None


_settings_cache: dict[str, WorkpoolSettings] = {}


def get_settings(*, _force_reload: bool = False) -> WorkpoolSettings:
    """Load, validate, and cache a :class:`WorkpoolSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = WorkpoolSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    _settings_cache.clear()


__all__ = ["WorkpoolSettings", "get_settings", "clear_settings_cache"]
