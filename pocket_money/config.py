"""
Configuration for Pocket Money.

Values come from environment variables prefixed with ``POCKET_MONEY_`` or
from a ``.env`` file. Call ``get_settings.cache_clear()`` to reload.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="POCKET_MONEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="pocket-money", description="Service name reported by /health")
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON lines; console rendering otherwise",
    )

    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    invite_expiry_days: int = Field(
        default=7,
        ge=1,
        le=365,
        description="Invite lifetime used when the request does not set one",
    )
    store_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a store call waits for the lock before failing",
    )
    seed_demo_data: bool = Field(
        default=False,
        description="Populate the in-memory store with a demo family",
    )
    root_path: str = Field(
        default="",
        description="Path prefix the app is mounted under, e.g. /api behind a serverless gateway",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
