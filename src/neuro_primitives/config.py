"""Centralised runtime settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Runtime configuration for embedding the estimation engine.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in the flat
    ``NEURO_PRIMITIVES_`` namespace (stripped automatically by
    *pydantic-settings*).  The engine itself never reads settings; callers
    turn them into an :class:`~neuro_primitives.estimation.config.EngineConfig`
    with ``EngineConfig.from_settings``, or build a configured estimator and
    logging setup at once with ``PrimitiveEstimator.from_settings``.
    """

    model_config = SettingsConfigDict(
        env_prefix="NEURO_PRIMITIVES_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["auto", "console", "json"] = "auto"

    # ── Estimation ────────────────────────────────────────────
    top_contributors: int = Field(5, ge=1)  # contributions kept per primitive
    cortisol_diurnal_rhythm: bool = True  # diurnal curve + awakening response


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
