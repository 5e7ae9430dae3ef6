"""
Configuration module using pydantic-settings for robust, validated environment management.
All configuration is centralized here: resolver policy, provider credentials, logging.
"""

import json
import logging
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all values at startup - fail fast principle.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
        populate_by_name=True,
    )

    # Resolver policy
    max_retries: int = Field(default=3, ge=1, description="Rounds per resolve call")
    solve_timeout_seconds: float = Field(default=70.0, gt=0.0, description="Per-provider deadline")
    retry_backoff_seconds: float = Field(default=1.5, ge=0.0)
    trust_threshold: int = Field(default=8, ge=0, le=10)
    max_provider_failures: int = Field(default=2, ge=1)

    # Provider polling
    polling_interval_seconds: float = Field(default=5.0, gt=0.0)
    provider_max_wait_seconds: float = Field(default=120.0, gt=0.0)

    # API Keys - lists accept "k1,k2" or a JSON array
    two_captcha_api_keys: Annotated[List[str], NoDecode] = Field(default_factory=list)
    anti_captcha_client_keys: Annotated[List[str], NoDecode] = Field(default_factory=list)
    capmonster_api_key: Optional[str] = None
    best_captcha_solver_tokens: Annotated[List[str], NoDecode] = Field(default_factory=list)
    gemini_api_key: Optional[str] = Field(default=None, alias="API_KEY")
    gemini_model_name: str = Field(default="gemini-1.5-flash")

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator(
        "two_captcha_api_keys", "anti_captcha_client_keys", "best_captcha_solver_tokens", mode="before"
    )
    @classmethod
    def split_key_list(cls, value):
        if not isinstance(value, str):
            return value
        value = value.strip()
        if value.startswith("["):
            return json.loads(value)
        return [key.strip() for key in value.split(",") if key.strip()]


# Singleton instance - load once at startup
settings = AppSettings()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the standard log format at the configured level."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
    )
