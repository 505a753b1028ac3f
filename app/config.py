from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Inbox settings, read from environment variables with .env as fallback.

    Environment variables win over the .env file; empty values are ignored
    and the defaults below apply.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    DATABASE_URL: str = "sqlite:///./inbox.db"
    LOG_LEVEL: str = "INFO"

    # Page size used when a paginated route gets no size, and its upper bound
    DEFAULT_PAGE_SIZE: int = Field(10, ge=1)
    MAX_PAGE_SIZE: int = Field(100, ge=1)


@lru_cache()
def get_settings() -> Settings:
    """Settings are built once; tests call get_settings.cache_clear()."""
    return Settings()


settings = get_settings()
