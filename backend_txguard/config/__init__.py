"""
Configuration management for the TxGuard backend.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for collaborator endpoints and bounds.
"""

from backend_txguard.config.settings import GuardSettings, get_settings, load_settings  # noqa: F401

__all__ = ["GuardSettings", "get_settings", "load_settings"]
