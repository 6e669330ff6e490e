# dishtile/config.py

import logging
import os
from pathlib import Path

from .errors import ConfigurationError

log = logging.getLogger(__name__)

STORAGE_BACKENDS = ("local", "supabase")


def _env_int(name, default):
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Centralized configuration for the Flask application and the tile scripts."""
    def __init__(self):
        # ----- Base paths -----
        self.BASE_DIR = Path(__file__).resolve().parent.parent
        self.DATA_DIR = Path(os.getenv("DATA_DIR", str(self.BASE_DIR / "data")))
        self.DISHES_YAML = Path(os.getenv("DISHES_YAML", str(self.DATA_DIR / "dishes.yaml")))
        self.TILE_STORE_DIR = Path(os.getenv("TILE_STORE_DIR", str(self.DATA_DIR / "store")))

        # ----- Site settings -----
        self.SITE_NAME = os.getenv("SITE_NAME", "dishtile")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        # ----- Storage backend -----
        # "local": YAML dish file + filesystem tile store
        # "supabase": dishes table + storage bucket on a Supabase project
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").strip().lower()
        self.SUPABASE_URL = os.getenv("SUPABASE_URL", os.getenv("NEXT_PUBLIC_SUPABASE_URL", "")).strip().rstrip("/")
        self.SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()
        self.TILE_BUCKET = os.getenv("TILE_BUCKET", "dish-tiles").strip()
        self.DISHES_TABLE = os.getenv("DISHES_TABLE", "dishes").strip()
        self.TILE_STORE_PUBLIC_URL = os.getenv("TILE_STORE_PUBLIC_URL", "").strip().rstrip("/")

        # Hosts never fetched as a generation source (egress control)
        skip_env = os.getenv("SKIP_SOURCE_HOSTS", "").strip()
        self.SKIP_SOURCE_HOSTS = [h.strip() for h in skip_env.split(",") if h.strip()]

        # ----- Answer obfuscation -----
        self.SALT_PREFIX = os.getenv("SALT_PREFIX", "fft").strip() or "fft"

        # ----- Tiles -----
        self.TILE_CACHE_TTL = _env_int("TILE_CACHE_TTL", 60 * 60 * 24 * 30)  # 30 days
        self.TILE_FALLBACK_TTL = _env_int("TILE_FALLBACK_TTL", 60 * 60 * 24)  # 24 hours
        self.TILE_WRITE_BACK = _env_bool("TILE_WRITE_BACK", False)
        self.TILE_LIST_PAGE_SIZE = _env_int("TILE_LIST_PAGE_SIZE", 100)
        self.IMAGE_FETCH_TIMEOUT = _env_int("IMAGE_FETCH_TIMEOUT", 20)

    def validate(self):
        """
        Validate critical configuration settings.

        Raises:
            ConfigurationError: listing every problem found.
        """
        errors = []
        if not self.SITE_NAME:
            errors.append("SITE_NAME is empty")
        if self.STORAGE_BACKEND not in STORAGE_BACKENDS:
            errors.append("STORAGE_BACKEND must be one of %s, got %r" % (", ".join(STORAGE_BACKENDS), self.STORAGE_BACKEND))
        if self.STORAGE_BACKEND == "supabase":
            if not self.SUPABASE_URL:
                errors.append("SUPABASE_URL is empty")
            if not self.SUPABASE_SERVICE_ROLE_KEY:
                errors.append("SUPABASE_SERVICE_ROLE_KEY is empty")
            if not self.TILE_BUCKET:
                errors.append("TILE_BUCKET is empty")
        if self.TILE_LIST_PAGE_SIZE <= 0:
            errors.append("TILE_LIST_PAGE_SIZE must be positive")

        if errors:
            for e in errors:
                log.error("Configuration error: %s", e)
            raise ConfigurationError("; ".join(errors))
        return True
