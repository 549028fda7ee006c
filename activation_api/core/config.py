# activation_api/core/config.py

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

ASYNC_DRIVER = "postgresql+asyncpg://"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def normalize_database_url(url: Optional[str]) -> Optional[str]:
    """Point plain postgres URLs at the asyncpg driver."""
    if not url:
        return None
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return ASYNC_DRIVER + url[len(prefix):]
    return url


@dataclass
class Settings:
    database_url: Optional[str] = None
    pool_size: int = 2
    pool_timeout: float = 3.0
    pool_recycle: int = 300
    statement_timeout: float = 10.0
    echo: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


def get_settings() -> Settings:
    # Vercel-style POSTGRES_URL wins over DATABASE_URL
    raw_url = os.getenv("POSTGRES_URL") or os.getenv("DATABASE_URL")
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        database_url=normalize_database_url(raw_url),
        pool_size=int(os.getenv("DB_POOL_SIZE", "2")),
        pool_timeout=float(os.getenv("DB_POOL_TIMEOUT", "3")),
        pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "300")),
        statement_timeout=float(os.getenv("DB_STATEMENT_TIMEOUT", "10")),
        echo=_env_bool("DB_ECHO"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
