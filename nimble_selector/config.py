"""Application configuration using environment variables."""
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATA_DIR = Path(__file__).resolve().parent / "data"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./nimble_selector.db")

    # Server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = _env_flag("DEBUG", "false")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # CORS - Frontend URL
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Content
    RULES_DATA_PATH: str = os.getenv("RULES_DATA_PATH", str(DATA_DIR))
    CATALOG_PATH: str = os.getenv("CATALOG_PATH", str(DATA_DIR / "catalog"))

    # Selector behaviour
    AUTO_OPEN_ON_LEVEL_UP: bool = _env_flag("AUTO_OPEN_ON_LEVEL_UP", "true")
    AUTO_SELECT_FEATURES: bool = _env_flag("AUTO_SELECT_FEATURES", "true")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
