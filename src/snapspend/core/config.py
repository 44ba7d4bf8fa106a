from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"

    database_url: str = "sqlite:///./snapspend.db"

    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Tried in order; the first backend that answers wins.
    extraction_models: list[str] = [
        "gemini-2.5-flash",
        "gemini-1.5-flash",
        "gemini-1.5-pro",
        "gemini-pro",
        "gemini-pro-vision",
    ]
    extraction_timeout_seconds: float = 60.0

    extraction_confidence: float = 0.85
    fallback_confidence: float = 0.1

    reconcile_divergence_tolerance: float = 0.05


settings = Settings()
