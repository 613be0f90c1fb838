"""
rentflow.settings
=================

Configuration settings for the Rentflow application.

This module provides centralized configuration options that can be used
across the package.  Deployment values (database, API) are plain module
constants read from ``RENTFLOW_*`` environment variables; business rules
live on the pydantic :class:`Settings` model so they can be validated and
overridden from a ``.env`` file.
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base directories
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# Database settings
# ---------------------------------------------------------------------------
DB_FILE = os.environ.get("RENTFLOW_DB_FILE", BASE_DIR / "rentflow.db")
DB_URL = os.environ.get("RENTFLOW_DB_URL", f"sqlite:///{DB_FILE}")
DB_ECHO = os.environ.get("RENTFLOW_DB_ECHO", "False").lower() == "true"

# API settings
# ---------------------------------------------------------------------------
API_HOST = os.environ.get("RENTFLOW_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("RENTFLOW_API_PORT", "8000"))
API_DEBUG = os.environ.get("RENTFLOW_API_DEBUG", "False").lower() == "true"


# ---------------------------------------------------------------------------
# Pydantic settings model for business rules
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Business rules, loaded from environment variables (``RENTFLOW_`` prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="RENTFLOW_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    business_timezone: str = Field(
        "Africa/Casablanca",
        description="IANA zone every rental timestamp is compared in",
    )
    early_start_window_hours: float = Field(
        24.0,
        ge=0,
        description="How long before the scheduled start staff may start a rental",
    )
    auto_activate: bool = Field(
        True,
        description="Let reconciliation move scheduled rentals to rented at start time",
    )
    audit_log_capacity: int = Field(
        100,
        gt=0,
        description="Entries kept by the in-memory audit sink",
    )
    system_actor: str = Field(
        "system",
        description="Actor id stamped on system-initiated status changes",
    )

    @property
    def early_start_window(self) -> timedelta:
        return timedelta(hours=self.early_start_window_hours)


# Initialize settings
settings = Settings()
