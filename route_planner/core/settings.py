from functools import lru_cache
from pathlib import Path
from typing import Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # AI route generation (OpenAI-compatible endpoint)
    AI_ENABLED: bool = True
    OPENAI_API_KEY: str = ""
    AI_BASE_URL: str = "https://api.openai.com"
    AI_MODEL: str = "gpt-4o-mini"
    AI_CONNECT_TIMEOUT_SECONDS: int = 15
    AI_READ_TIMEOUT_SECONDS: int = 180  # multi-variant generation can take minutes
    AI_TEMPERATURE: float = 0.7

    # Itinerary generation
    MAX_ITINERARY_DAYS: int = 14

    # Trending routes
    HOT_ROUTES_DEFAULT_LIMIT: int = 4
    HOT_ROUTES_MAX_LIMIT: int = 50
    HOT_ROUTES_CANDIDATE_POOL: int = 50

    # Rate Limiting
    ENABLE_RATE_LIMITING: bool = True
    RATE_LIMIT_GENERATE: str = "5/minute"
    RATE_LIMIT_READ: str = "60/minute"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    ALLOWED_ORIGINS: Union[list, str] = ["http://localhost:5173", "http://localhost:3000"]

    @field_validator('ALLOWED_ORIGINS', mode='before')
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse ALLOWED_ORIGINS from comma-separated string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @property
    def ai_configured(self) -> bool:
        return self.AI_ENABLED and bool(self.OPENAI_API_KEY and self.OPENAI_API_KEY.strip())

    @property
    def ai_read_timeout(self) -> int:
        return self.AI_READ_TIMEOUT_SECONDS if self.AI_READ_TIMEOUT_SECONDS > 0 else 180

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings used by app wiring (rate limits, CORS, logging)."""
    return Settings()
