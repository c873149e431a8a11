"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    app_version: str = "1.0.0"

    auth_provider: Literal["jwt", "mock"] = "jwt"
    jwt_secret: str
    token_ttl_seconds: int = Field(default=7 * 24 * 60 * 60, ge=60)

    store_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "sqlite:///./voicememo.db"

    storage_provider: Literal["local", "s3"] = "local"
    upload_dir: str = "./uploads"
    public_base_url: str = "http://localhost:3000"
    s3_bucket: str | None = None
    s3_region: str | None = None
    public_cdn_base: str | None = None

    stt_provider: Literal["whisper", "mock"] = "whisper"
    openai_api_key: str | None = None
    transcription_timeout_seconds: float = Field(default=60.0, gt=0)
    summary_provider: Literal["gemini", "mock"] = "gemini"
    gemini_api_key: str | None = None
    summarization_timeout_seconds: float = Field(default=30.0, gt=0)
    max_audio_bytes: int = Field(default=50 * 1024 * 1024, gt=0)

    worker_count: int = Field(default=4, ge=1)

    rate_limit_window_seconds: float = Field(default=900.0, gt=0)
    rate_limit_max_requests: int = Field(default=120, ge=1)
    transcript_rate_limit_max: int = Field(default=10, ge=1)
    cors_origins: list[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(env_prefix="VOICEMEMO_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
