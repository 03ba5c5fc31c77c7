"""
Application settings for the threat prevention core.

Responsibilities:
- Collect collaborator endpoints and timeouts from the environment (config.env).
- Hold learner bounds and simulation thresholds with defaults.
- Expose a single cached, immutable settings object via get_settings().
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass, field
from pathlib import Path

from backend_txguard.config.env import (
    get_collaborator_timeout_sec,
    get_denylist_path,
    get_simulator_api_key,
    get_simulator_url,
    get_threat_feed_urls,
    load_txguard_env,
)

DEFAULT_HISTORY_SIZE = 50
DEFAULT_MAX_WALLETS = 10_000
DEFAULT_LARGE_TRANSFER_THRESHOLD = 1000.0


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class GuardSettings:
    """
    Immutable service configuration.

    collaborator_timeout_sec bounds each simulator and threat-feed call;
    a timeout fails the evaluation closed.
    """

    simulator_url: str | None = None
    simulator_api_key: str | None = None
    threat_feed_urls: tuple[str, ...] = field(default_factory=tuple)
    denylist_path: Path | None = None
    collaborator_timeout_sec: float = 10.0
    history_size: int = DEFAULT_HISTORY_SIZE
    """Observations kept per wallet profile (ring buffer)."""
    max_wallets: int = DEFAULT_MAX_WALLETS
    """Wallet profiles kept before least-recently-seen eviction."""
    large_transfer_threshold: float = DEFAULT_LARGE_TRANSFER_THRESHOLD
    """Simulated balance_change above this is flagged as a large transfer."""


def load_settings() -> GuardSettings:
    """Build settings from the current environment (uncached)."""
    load_txguard_env()
    return GuardSettings(
        simulator_url=get_simulator_url(),
        simulator_api_key=get_simulator_api_key(),
        threat_feed_urls=tuple(get_threat_feed_urls()),
        denylist_path=get_denylist_path(),
        collaborator_timeout_sec=get_collaborator_timeout_sec(),
        history_size=_env_int("TXGUARD_HISTORY_SIZE", DEFAULT_HISTORY_SIZE),
        max_wallets=_env_int("TXGUARD_MAX_WALLETS", DEFAULT_MAX_WALLETS),
        large_transfer_threshold=_env_float(
            "TXGUARD_LARGE_TRANSFER_THRESHOLD", DEFAULT_LARGE_TRANSFER_THRESHOLD
        ),
    )


@functools.lru_cache(maxsize=1)
def get_settings() -> GuardSettings:
    """Return the process-wide settings, loaded once from the environment."""
    return load_settings()
