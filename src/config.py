"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Heartline"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Garmin Connect ---
    # Optional on purpose: missing credentials degrade to synthetic data
    garmin_email: str | None = None
    garmin_password: str | None = None
    garmin_domain: str = "garmin.com"
    garth_token_dir: str | None = None  # e.g. ~/.garth; enables token resume

    # --- Gateway ---
    cache_ttl_seconds: float = 600.0
    fetch_timeout_seconds: float = 15.0
    login_timeout_seconds: float = 30.0
    stale_policy: Literal["synthetic", "stale"] = "synthetic"

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def has_credentials(self) -> bool:
        return bool(self.garmin_email and self.garmin_password)


@lru_cache
def get_settings() -> Settings:
    return Settings()
