"""
Configuration and settings for the mock-test service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Firebase service account (Firestore + Auth)
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_client_email: Optional[str] = Field(default=None)
    firebase_private_key: Optional[str] = Field(default=None)
    admin_email: Optional[str] = Field(default=None)

    # SQL store; takes precedence over Firestore when set
    database_url: Optional[str] = Field(default=None)

    # Telegram bot used as file storage for question files
    telegram_bot_token: Optional[str] = Field(default=None)

    # File-URL cache (Redis when configured, in-process otherwise)
    redis_url: Optional[str] = Field(default=None)
    file_url_cache_ttl_seconds: int = Field(default=3600, gt=0)
    file_url_cache_max_entries: int = Field(default=1024, gt=0)

    # Test sessions
    default_test_duration_seconds: int = Field(default=1800, gt=0)
    max_test_duration_seconds: int = Field(default=6 * 3600, gt=0)
    enforce_test_deadline: bool = Field(default=True)
    answer_grace_seconds: int = Field(default=30, ge=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)
    use_sample_questions: bool = Field(default=False)

    @field_validator("firebase_private_key")
    @classmethod
    def _expand_newlines(cls, value: Optional[str]) -> Optional[str]:
        # Keys pasted into env files carry literal "\n" sequences.
        return value.replace("\\n", "\n") if value else value

    @property
    def firebase_configured(self) -> bool:
        return bool(
            self.firebase_project_id
            and self.firebase_client_email
            and self.firebase_private_key
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
