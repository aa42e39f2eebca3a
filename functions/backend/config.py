"""
Configuration and settings for the Cloud Functions backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings shared by every function instance."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="Sister Dev Playground")
    app_version: str = Field(default="1.0.0")

    # Billing (Stripe)
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(
        default=None, alias="STRIPE_WEBHOOK_SECRET"
    )
    stripe_api_version: str = Field(default="2023-10-16", alias="STRIPE_API_VERSION")

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")

    # Email (SMTP)
    smtp_server: str = Field(default="smtp.gmail.com", alias="SMTP_SERVER")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    sender_email: Optional[str] = Field(default=None, alias="SENDER_EMAIL")
    sender_password: Optional[str] = Field(default=None, alias="SENDER_PASSWORD")

    # Scheduled jobs
    reminder_timezone: str = Field(default="Asia/Tokyo", alias="REMINDER_TIMEZONE")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="PLAYGROUND_USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
