"""
Environment variable loading for TxGuard collaborators.

- SIMULATOR_URL: transaction simulation endpoint (POST JSON)
- SIMULATOR_API_KEY: optional access key sent as X-Access-Key
- THREAT_FEED_URLS: comma-separated threat feed base URLs, tried in order
- THREAT_DENYLIST_PATH: override for the bundled known-threats JSON
- TXGUARD_COLLABORATOR_TIMEOUT_SEC: timeout for simulator/feed calls
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_txguard/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_DENYLIST_PATH = _PACKAGE_DIR / "threat_intel" / "known_threats.json"
DEFAULT_COLLABORATOR_TIMEOUT_SEC = 10.0


def load_txguard_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def get_simulator_url() -> str | None:
    load_txguard_env()
    url = (os.getenv("SIMULATOR_URL") or "").strip()
    return url or None


def get_simulator_api_key() -> str | None:
    load_txguard_env()
    key = (os.getenv("SIMULATOR_API_KEY") or "").strip()
    return key or None


def get_threat_feed_urls() -> list[str]:
    """Return THREAT_FEED_URLS split on commas, order preserved, blanks dropped."""
    load_txguard_env()
    raw = os.getenv("THREAT_FEED_URLS") or ""
    return [u.strip().rstrip("/") for u in raw.split(",") if u.strip()]


def get_denylist_path() -> Path:
    load_txguard_env()
    raw = (os.getenv("THREAT_DENYLIST_PATH") or "").strip()
    return Path(raw) if raw else DEFAULT_DENYLIST_PATH


def get_collaborator_timeout_sec() -> float:
    """
    Return TXGUARD_COLLABORATOR_TIMEOUT_SEC as a positive float.
    Unparseable or non-positive values fall back to the default.
    """
    load_txguard_env()
    raw = (os.getenv("TXGUARD_COLLABORATOR_TIMEOUT_SEC") or "").strip()
    if not raw:
        return DEFAULT_COLLABORATOR_TIMEOUT_SEC
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_COLLABORATOR_TIMEOUT_SEC
    return value if value > 0 else DEFAULT_COLLABORATOR_TIMEOUT_SEC
