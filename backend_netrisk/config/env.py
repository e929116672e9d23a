"""
Environment variable loading for NetRisk.

- Loads .env from project root when available.
- NETRISK_SNAPSHOT_DIR: directory holding a JSON input snapshot
- NETRISK_DB_URL / DATABASE_URL: SQLAlchemy URL for the SQL data source
- NETRISK_REST_URL / NETRISK_REST_API_KEY: PostgREST-style data source
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_netrisk/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"


def load_netrisk_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    from dotenv import load_dotenv

    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def get_env_str(name: str, default: str = "") -> str:
    load_netrisk_env()
    return (os.getenv(name) or default).strip()


def get_database_url() -> str:
    """Return NETRISK_DB_URL, else DATABASE_URL, else empty string (SQL source disabled)."""
    load_netrisk_env()
    return (os.getenv("NETRISK_DB_URL") or os.getenv("DATABASE_URL") or "").strip()


def get_snapshot_dir() -> Path | None:
    """Return NETRISK_SNAPSHOT_DIR as a Path, or None when unset."""
    raw = get_env_str("NETRISK_SNAPSHOT_DIR")
    return Path(raw) if raw else None
