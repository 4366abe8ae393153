"""
Environment driven settings.

Values come from the process environment, with a ``.env`` file loaded
first when present. Nothing else in the package reads the environment;
settings are passed in explicitly.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


PLACEHOLDER_API_KEY = 'your_api_key_here'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}; using {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}={raw!r}; using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    google_maps_api_key: Optional[str] = None
    default_categories: Tuple[str, ...] = ('cafe', 'restaurant', 'bar')
    search_timeout_seconds: float = 15.0
    places_max_workers: int = 10
    places_page_size: int = 20
    log_level: str = 'INFO'
    log_file: Optional[str] = 'app.log'

    @property
    def has_api_key(self) -> bool:
        return bool(self.google_maps_api_key) and self.google_maps_api_key != PLACEHOLDER_API_KEY

    @classmethod
    def from_env(cls) -> 'Settings':
        categories = tuple(
            c.strip() for c in os.getenv('DEFAULT_CATEGORIES', 'cafe,restaurant,bar').split(',') if c.strip()
        )
        return cls(
            google_maps_api_key=os.getenv('GOOGLE_MAPS_API_KEY'),
            default_categories=categories or cls.default_categories,
            search_timeout_seconds=_float_env('SEARCH_TIMEOUT_SECONDS', 15.0),
            places_max_workers=_int_env('PLACES_MAX_WORKERS', 10),
            places_page_size=_int_env('PLACES_PAGE_SIZE', 20),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_file=os.getenv('LOG_FILE', 'app.log') or None,
        )


def get_settings(dotenv_path=None) -> Settings:
    """Load .env (if present) and build Settings from the environment"""
    load_dotenv(dotenv_path=dotenv_path)
    return Settings.from_env()


def configure_logging(settings: Settings) -> None:
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
