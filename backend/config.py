# backend/config.py
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    DATABASE_URL: str = "sqlite:///./database_shopinventory.db"
    DB_ECHO: bool = False

    # Origins allowed to call the API (admin, user and sales front-ends)
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    REDIS_URL: str = "redis://localhost:6379/0"

    # Dashboard aggregates are cached per tag for this long
    DASHBOARD_CACHE_TTL_SECONDS: int = 3600

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore")

    # Azure/Heroku hand out postgres:// URLs, SQLAlchemy requires postgresql://
    @field_validator("DATABASE_URL")
    @classmethod
    def _normalize_db_url(cls, value: str) -> str:
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql://", 1)
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
