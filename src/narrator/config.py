"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Fallback key when no credential has been stored locally
    gemini_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY", "gemini_api_key"),
    )
    gemini_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl(
            "https://generativelanguage.googleapis.com/v1beta"
        ),
        validation_alias=AliasChoices("GEMINI_BASE_URL", "gemini_base_url"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("GEMINI_TIMEOUT", "request_timeout"),
        ge=1,
    )
    translation_model: str = Field(
        default="gemini-2.5-flash",
        validation_alias=AliasChoices("TRANSLATION_MODEL", "translation_model"),
    )
    style_model: str = Field(
        default="gemini-2.5-flash",
        validation_alias=AliasChoices("STYLE_MODEL", "style_model"),
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        validation_alias=AliasChoices("IMAGE_MODEL", "image_model"),
    )

    chunk_max_chars: int = Field(
        default=2000,
        ge=1,
        validation_alias=AliasChoices("CHUNK_MAX_CHARS", "chunk_max_chars"),
    )
    sample_rate: int = Field(
        default=24000,
        ge=8000,
        le=48000,
        validation_alias=AliasChoices("SAMPLE_RATE", "sample_rate"),
    )
    num_channels: int = Field(
        default=1,
        ge=1,
        le=2,
        validation_alias=AliasChoices("NUM_CHANNELS", "num_channels"),
    )
    mp3_bitrate_kbps: int = Field(
        default=128,
        ge=32,
        le=320,
        validation_alias=AliasChoices("MP3_BITRATE_KBPS", "mp3_bitrate_kbps"),
    )

    credentials_path: Path = Field(
        default_factory=lambda: Path("data/credentials.json"),
        validation_alias=AliasChoices("CREDENTIALS_PATH", "credentials_path"),
    )
    default_project_name: str = Field(
        default="audiobook",
        min_length=1,
        validation_alias=AliasChoices("DEFAULT_PROJECT_NAME", "default_project_name"),
    )

    log_dir: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("LOG_DIR", "log_dir"),
    )
    log_retention_hours: int = Field(
        default=48,
        ge=0,
        validation_alias=AliasChoices("LOG_RETENTION_HOURS", "log_retention_hours"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
