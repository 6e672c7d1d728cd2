"""Database and API configuration."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .env import env_str
from .paths import DEFAULT_DATABASE_PATH

__all__ = ["AppConfig", "app_config", "DATABASE_URL", "CORS_ORIGINS", "LOG_LEVEL"]

_DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def _parse_cors_origins() -> list[str]:
    raw = env_str("CORS_ORIGINS", "")
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return list(_DEFAULT_CORS_ORIGINS)


class AppConfig(BaseModel):
    database_url: str = Field(
        default_factory=lambda: env_str("DATABASE_URL", f"sqlite:///{DEFAULT_DATABASE_PATH}")
    )
    cors_origins: list[str] = Field(default_factory=_parse_cors_origins)
    log_level: str = Field(default_factory=lambda: env_str("LOG_LEVEL", "INFO").upper())


app_config = AppConfig()

DATABASE_URL = app_config.database_url
CORS_ORIGINS = app_config.cors_origins
LOG_LEVEL = app_config.log_level
