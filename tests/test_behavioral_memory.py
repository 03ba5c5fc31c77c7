"""
Tests for wallet behavioral memory: baseline learning, anomaly scoring,
history and store bounds, and pattern summaries.
"""

from __future__ import annotations

import asyncio

import pytest

from backend_txguard.behavioral_memory import PatternLearner
from backend_txguard.behavioral_memory.engine import observe, score_anomaly
from backend_txguard.core.models import TransactionRequest
from conftest import OTHER, RECIPIENT, WALLET, make_tx


def _history(n: int = 5, value: str = "0.1", to: str = RECIPIENT) -> list[dict]:
    return [make_tx(to=to, value=value) for _ in range(n)]


def _learned(learner: PatternLearner, address: str = WALLET, txs=None) -> PatternLearner:
    asyncio.run(learner.learn_from_transactions(address, txs if txs is not None else _history()))
    return learner


def test_cold_start_is_never_anomalous(learner):
    result = asyncio.run(learner.detect_anomaly(WALLET, make_tx(value="1000")))
    assert result.is_anomaly is False
    assert result.confidence == 0.0
    assert result.reasons == ["no_baseline_insufficient_history"]
    assert WALLET not in learner


def test_below_min_baseline_is_cold_start(learner):
    _learned(learner, txs=_history(2))
    result = asyncio.run(learner.detect_anomaly(WALLET, make_tx(value="1000")))
    assert result.is_anomaly is False
    assert result.reasons == ["no_baseline_insufficient_history"]


def test_matching_transaction_is_normal(learner):
    _learned(learner)
    result = asyncio.run(learner.detect_anomaly(WALLET, make_tx(value="0.1")))
    assert result.is_anomaly is False
    assert result.confidence == 0.0
    assert result.reasons == []


def test_value_spike_confidence_grows_with_ratio(learner):
    _learned(learner)
    result = asyncio.run(learner.detect_anomaly(WALLET, make_tx(value="1.2")))
    assert result.is_anomaly is True
    assert result.confidence == pytest.approx(0.525)
    assert result.reasons == ["value_ratio=12.0"]
    assert result.explanation.startswith("Unusual for this wallet: ")

    bigger = asyncio.run(learner.detect_anomaly(WALLET, make_tx(value="12")))
    assert bigger.confidence > result.confidence


def test_all_rules_together_cap_at_one(learner):
    _learned(learner)
    result = asyncio.run(learner.detect_anomaly(WALLET, make_tx(to=OTHER, value="10", data="0xdeadbeef")))
    assert result.is_anomaly is True
    assert result.confidence == 1.0
    assert result.reasons == [
        "value_ratio=100.0",
        "new_recipient_elevated_value",
        "unfamiliar_selector=0xdeadbeef",
    ]


def test_new_recipient_at_typical_value_is_normal(learner):
    _learned(learner)
    result = asyncio.run(learner.detect_anomaly(WALLET, make_tx(to=OTHER, value="0.05")))
    assert result.is_anomaly is False


def test_new_recipient_above_median(learner):
    _learned(learner, txs=_history(3, "0.1") + _history(2, "0.3"))
    result = asyncio.run(learner.detect_anomaly(WALLET, make_tx(to=OTHER, value="0.2")))
    assert result.is_anomaly is True
    assert result.reasons == ["new_recipient_elevated_value"]
    assert result.confidence == pytest.approx(0.25)


def test_addresses_are_case_insensitive(learner):
    _learned(learner, address="0x" + "A" * 40)
    assert ("0x" + "a" * 40) in learner
    result = asyncio.run(learner.detect_anomaly("0x" + "a" * 40, make_tx(value="1.2")))
    assert result.is_anomaly is True


def test_history_is_bounded_per_wallet():
    learner = PatternLearner(history_size=3)
    _learned(learner, txs=_history(5))
    summary = learner.get_pattern_summary(WALLET)
    assert summary.observations == 3
    assert summary.total_learned == 5


def test_store_evicts_least_recently_seen_wallet():
    learner = PatternLearner(max_wallets=2)
    a, b, c = "0x" + "a" * 40, "0x" + "b" * 40, "0x" + "c" * 40
    for address in (a, b, c):
        _learned(learner, address=address)
    assert len(learner) == 2
    assert a not in learner
    assert b in learner and c in learner


def test_anomaly_check_refreshes_recency():
    learner = PatternLearner(max_wallets=2)
    a, b, c = "0x" + "a" * 40, "0x" + "b" * 40, "0x" + "c" * 40
    _learned(learner, address=a)
    _learned(learner, address=b)
    asyncio.run(learner.detect_anomaly(a, make_tx(value="0.1")))
    _learned(learner, address=c)
    assert a in learner
    assert b not in learner


def test_relearning_refreshes_recency():
    learner = PatternLearner(max_wallets=2)
    a, b, c = "0x" + "a" * 40, "0x" + "b" * 40, "0x" + "c" * 40
    _learned(learner, address=a)
    _learned(learner, address=b)
    _learned(learner, address=a)
    _learned(learner, address=c)
    assert a in learner
    assert b not in learner


def test_provider_records_are_learned():
    """Provider-shaped records (to_address / input) feed the same baseline."""
    learner = PatternLearner()
    records = [
        {"to_address": RECIPIENT, "value": "0x16345785d8a0000", "input": "0xa9059cbb" + "0" * 128}
        for _ in range(4)
    ]
    assert asyncio.run(learner.learn_from_transactions(WALLET, records)) == 4
    summary = learner.get_pattern_summary(WALLET)
    assert summary.unique_recipients == 1
    assert summary.max_value == pytest.approx(0.1)
    assert summary.top_selectors == [("0xa9059cbb", 4)]


def test_concurrent_learning_for_one_wallet_is_not_lost():
    learner = PatternLearner()

    async def run() -> None:
        await asyncio.gather(*(learner.learn_from_transactions(WALLET, _history(2)) for _ in range(10)))

    asyncio.run(run())
    assert learner.get_pattern_summary(WALLET).total_learned == 20


def test_pattern_summary():
    learner = PatternLearner(clock=lambda: 1_700_000_000.0)
    assert learner.get_pattern_summary(WALLET) is None
    _learned(learner, txs=_history(2, "0.1") + _history(1, "0.4", to=OTHER))
    summary = learner.get_pattern_summary(WALLET)
    assert summary.observations == 3
    assert summary.unique_recipients == 2
    assert summary.min_value == pytest.approx(0.1)
    assert summary.median_value == pytest.approx(0.1)
    assert summary.max_value == pytest.approx(0.4)
    out = summary.to_dict()
    assert out["lastSeen"] == 1_700_000_000.0
    assert out["valueRange"]["max"] == pytest.approx(0.4)


def test_score_anomaly_is_deterministic(learner):
    _learned(learner)
    profile = learner._profiles[WALLET.lower()]
    candidate = observe(TransactionRequest.model_validate(make_tx(value="2")))
    assert score_anomaly(profile, candidate) == score_anomaly(profile, candidate)


def test_invalid_bounds_rejected():
    with pytest.raises(ValueError):
        PatternLearner(history_size=0)
    with pytest.raises(ValueError):
        PatternLearner(max_wallets=0)
