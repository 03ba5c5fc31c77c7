"""
Pytest fixtures for TxGuard tests. Collaborators are in-memory fakes; no network.
"""

from __future__ import annotations

from typing import Any

import pytest

from backend_txguard.behavioral_memory import PatternLearner
from backend_txguard.config.settings import get_settings
from backend_txguard.core.exceptions import ThreatFeedError
from backend_txguard.core.models import SimulationRequest, SimulationResult
from backend_txguard.prevention import ThreatPreventionEngine
from backend_txguard.threat_intel import ThreatIntelligence
from backend_txguard.threat_intel.feeds import ThreatRecord

WALLET = "0x" + "1" * 40
RECIPIENT = "0x" + "2" * 40
OTHER = "0x" + "3" * 40
ZERO_ADDRESS = "0x" + "0" * 40


class FakeSimulator:
    """Returns a fixed payload (or raises) and records every request it gets."""

    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result if result is not None else SimulationResult(success=True)
        self.error = error
        self.requests: list[SimulationRequest] = []

    async def simulate(self, request: SimulationRequest) -> Any:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result


class FakeFeed:
    """ThreatFeed stand-in: fixed records, or ThreatFeedError when failing."""

    def __init__(self, name: str, records: list[ThreatRecord] | None = None, fail: bool = False) -> None:
        self.name = name
        self.records = records or []
        self.fail = fail
        self.calls: list[str] = []

    async def lookup(self, address, transactions, approvals) -> list[ThreatRecord]:
        self.calls.append(address)
        if self.fail:
            raise ThreatFeedError(f"{self.name} unavailable")
        return list(self.records)


def make_tx(to: str = RECIPIENT, value: str | None = "0x0", data: str | None = "0x", **extra: Any) -> dict:
    tx = {"from": WALLET, "to": to, "value": value, "data": data}
    tx.update(extra)
    return tx


@pytest.fixture
def clean_settings(monkeypatch):
    """Clear TxGuard env vars and the cached settings around a test."""
    for name in (
        "SIMULATOR_URL",
        "SIMULATOR_API_KEY",
        "THREAT_FEED_URLS",
        "THREAT_DENYLIST_PATH",
        "TXGUARD_COLLABORATOR_TIMEOUT_SEC",
        "TXGUARD_HISTORY_SIZE",
        "TXGUARD_MAX_WALLETS",
        "TXGUARD_LARGE_TRANSFER_THRESHOLD",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("backend_txguard.config.env.load_txguard_env", lambda: None)
    monkeypatch.setattr("backend_txguard.config.settings.load_txguard_env", lambda: None)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


@pytest.fixture
def simulator():
    return FakeSimulator()


@pytest.fixture
def learner():
    return PatternLearner()


@pytest.fixture
def empty_intel():
    return ThreatIntelligence(denylist={})


@pytest.fixture
def make_engine(simulator, learner, empty_intel):
    """Build an engine around the fakes; override any collaborator by keyword."""

    def _make(**overrides: Any) -> ThreatPreventionEngine:
        return ThreatPreventionEngine(
            overrides.pop("simulator", simulator),
            overrides.pop("threat_intel", empty_intel),
            overrides.pop("pattern_learner", learner),
            **overrides,
        )

    return _make
