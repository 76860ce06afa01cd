"""
Configuration module for Pastebin.
Loads environment variables and provides config objects.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 7
DEFAULT_MAX_PASTE_BYTES = 4 * 1024 * 1024

CONTENT_BACKENDS = ("file", "sql", "redis", "memory")
METADATA_BACKENDS = ("sql", "redis", "memory")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


def _env_choice(name: str, default: str, choices) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}, got {value!r}")
    return value


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.APP_DOMAIN: str = os.getenv("APP_DOMAIN", "http://localhost:8000")
        self.DEBUG: bool = _env_bool("DEBUG", "False")

        self.CONTENT_BACKEND: str = _env_choice("CONTENT_BACKEND", "file", CONTENT_BACKENDS)
        self.METADATA_BACKEND: str = _env_choice("METADATA_BACKEND", "sql", METADATA_BACKENDS)
        self.UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "upload")
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pastebin.db")
        self.REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

        # TTL is server-controlled; clients never choose it
        self.PASTE_TTL_SECONDS: int = _env_positive_int("PASTE_TTL_SECONDS", DEFAULT_TTL_SECONDS)
        self.MAX_PASTE_BYTES: int = _env_positive_int("MAX_PASTE_BYTES", DEFAULT_MAX_PASTE_BYTES)
        self.SWEEP_INTERVAL_SECONDS: int = _env_positive_int("SWEEP_INTERVAL_SECONDS", 60)
        self.SWEEPER_ENABLED: bool = _env_bool("SWEEPER_ENABLED", "True")

    @property
    def base_url(self) -> str:
        return self.APP_DOMAIN.rstrip("/")


settings = Settings()
