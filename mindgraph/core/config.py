import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

PROVIDER_MODES = ("hybrid", "groq", "gemini")


class Settings(BaseSettings):
    """MindGraph settings, read from the environment and an optional .env file."""

    # ── Provider selection ────────────────────────────────────────────────────
    # "hybrid" tries Groq then Gemini; a single name pins one provider.
    AI_PROVIDER: str = "hybrid"

    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    GOOGLE_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # ── Mind map generation ───────────────────────────────────────────────────
    MINDMAP_TEMPERATURE: float = 0.3
    MINDMAP_MAX_TOKENS: int = 8000
    AI_MAX_RETRIES: int = 2
    AI_TIMEOUT_SECONDS: float = 300  # whole request, all retries included

    # ── Service ───────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("AI_PROVIDER")
    @classmethod
    def check_provider_mode(cls, value: str) -> str:
        mode = value.strip().lower()
        if mode not in PROVIDER_MODES:
            raise ValueError(f"AI_PROVIDER must be one of {', '.join(PROVIDER_MODES)}; got '{value}'")
        return mode

    @field_validator("LOG_LEVEL")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name; got '{value}'")
        return level

    @field_validator("AI_MAX_RETRIES")
    @classmethod
    def check_retries(cls, value: int) -> int:
        if value < 1:
            raise ValueError("AI_MAX_RETRIES must be at least 1")
        return value


settings = Settings()
