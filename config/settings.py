"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    DB_TIMEOUT_S: float = 10.0
    APP_CONFIG_PATH: str = Field(default="app_config.json")

    DEFAULT_DURATION_MINUTES: int = Field(default=30, ge=1)
    INIT_WORKERS: int = Field(default=4, ge=1)
    POLL_INTERVAL_SECONDS: float = Field(default=3.0, gt=0)
    POLL_MAX_ATTEMPTS: int = Field(default=40, ge=1)

    SYSTEM_PROMPT: str = (
        "You are an expert AI interviewer. Be concise and probing; "
        "follow STAR for behavioral questions."
    )
    PROMPT_HISTORY_LIMIT: int = Field(default=0, ge=0)

    STT_PROVIDER: str = "assemblyai"
    TTS_PROVIDER: str = "openai"
    ASSEMBLYAI_API_KEY: str | None = None
    ASSEMBLYAI_BASE_URL: str = "https://api.assemblyai.com/v2"
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    TTS_MODEL: str = "tts-1-hd"
    TTS_VOICE: str = "alloy"
    SPEECH_TIMEOUT_S: float = 30.0
    STT_POLL_ATTEMPTS: int = Field(default=30, ge=1)
    STT_POLL_INTERVAL_SECONDS: float = 1.0

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
