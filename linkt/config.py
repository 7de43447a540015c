"""
Environment configuration.
"""
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

from linkt.store import MAX_FILE_SIZE, MAX_TEXT_SIZE

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(key: str, default: bool) -> bool:
    return os.getenv(key, str(default)).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        value = int(raw)
        if value < 0:
            raise ValueError
        return value
    except ValueError:
        logger.warning(f"Invalid {key} value '{raw}'. Falling back to {default}.")
        return default


def _env_list(key: str) -> List[str]:
    return [item.strip() for item in os.getenv(key, "").split(",") if item.strip()]


@dataclass
class Settings:
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", False))
    production_domain: str = field(default_factory=lambda: os.getenv("PRODUCTION_DOMAIN", "linkt.app"))
    upload_dir: str = field(default_factory=lambda: os.getenv("UPLOAD_DIR", "uploads"))
    database_path: str = field(default_factory=lambda: os.getenv("DATABASE_PATH", "data/shares.db"))
    cleanup_secret: Optional[str] = field(default_factory=lambda: os.getenv("CLEANUP_SECRET") or None)
    sweep_interval_seconds: int = field(default_factory=lambda: _env_int("SWEEP_INTERVAL_SECONDS", 0))
    max_file_size: int = field(default_factory=lambda: _env_int("MAX_FILE_SIZE", MAX_FILE_SIZE))
    max_text_size: int = field(default_factory=lambda: _env_int("MAX_TEXT_SIZE", MAX_TEXT_SIZE))
    rate_limit_enabled: bool = field(default_factory=lambda: _env_bool("RATE_LIMIT_ENABLED", True))
    extra_allowed_hosts: List[str] = field(default_factory=lambda: _env_list("ALLOWED_HOSTS"))

    @property
    def allowed_origins(self) -> List[str]:
        return [
            f"https://{self.production_domain}",
            f"https://www.{self.production_domain}",
        ] + (["http://localhost:8000", "http://127.0.0.1:8000"] if self.debug else [])

    @property
    def allowed_hosts(self) -> List[str]:
        return (
            [self.production_domain, f"*.{self.production_domain}"]
            + (["localhost", "127.0.0.1"] if self.debug else [])
            + self.extra_allowed_hosts
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, read once from the environment."""
    return Settings()
