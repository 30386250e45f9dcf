"""Engine configuration.

Loads from environment variables (prefix ``SPARKSTOCK_``) and a .env file.
Runtime settings that members edit (webhook URL, email channel, roster,
password) live in the config document instead; see ``config_store``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Deployment configuration for the Spark Stock engine."""

    # ----- Document store -----
    store_backend: Literal["memory", "firestore"] = Field(
        default="memory",
        description="Which document store backend to use.",
    )
    collection: str = Field(
        default="sparkstock",
        description="Collection holding the inventory and config documents.",
    )
    firestore_project_id: str = Field(default="", description="Firestore project id.")
    firestore_api_key: str = Field(default="", description="Web API key.")
    firestore_database: str = Field(default="(default)")
    firestore_poll_interval: float = Field(
        default=5.0,
        description="Seconds between polls of a subscribed document.",
    )

    # ----- Weekly digest -----
    digest_timezone: str = Field(
        default="America/New_York",
        description="Reference timezone for the weekly digest schedule.",
    )
    digest_weekday: int = Field(default=0, ge=0, le=6, description="0 = Monday.")
    digest_hour: int = Field(default=18, ge=0, le=23)
    digest_minute: int = Field(default=0, ge=0, le=59)
    digest_check_interval: int = Field(
        default=60,
        description="Seconds between schedule checks.",
    )

    # ----- Delivery -----
    app_url: str = Field(
        default="",
        description="Link to the inventory app included in notifications.",
    )
    http_timeout: float = Field(default=10.0)

    model_config = SettingsConfigDict(
        env_prefix="SPARKSTOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def inventory_path(self) -> str:
        return f"{self.collection}/inventory"

    @property
    def config_path(self) -> str:
        return f"{self.collection}/config"


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached settings singleton."""
    return EngineSettings()
