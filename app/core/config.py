from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Base
    APP_ENV: str = "dev"  # dev | staging | prod | test
    APP_NAME: str = "School Book QA API"
    APP_VERSION: str = "0.1.0"

    # CORS
    CORS_ORIGINS: str = "*"

    # Security
    API_KEY: str = "change_me"

    # Database
    DATABASE_URL: str = "sqlite:///./bookqa.db"

    # Storage
    STORAGE_PATH: str = "./storage"
    BOOKS_BUCKET: str = "books"
    OUTPUT_BUCKET: str = "output"
    BOOKS_MAX_MB: int = 50
    OUTPUT_MAX_MB: int = 10

    # LLM
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    METADATA_EXCERPT_PAGES: int = 3
    METADATA_EXCERPT_CHARS: int = 4000
    METADATA_STRICT_PARSE: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        return origins or ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
