"""
Behavioral memory engine: learn a per-wallet baseline and flag deviations.

Profiles live in an LRU-bounded in-process store keyed by lowercased
address. Learning and anomaly checks for the same wallet are serialized by
a per-address asyncio.Lock; different wallets never contend. Statistical
only; no ML.
"""

from __future__ import annotations

import asyncio
import statistics
import time
from collections import OrderedDict
from collections.abc import Iterable, Mapping
from typing import Any, Callable

from backend_txguard.analysis_engine.calldata import function_selector, value_to_units
from backend_txguard.behavioral_memory.models import (
    AnomalyResult,
    PatternSummary,
    TransactionObservation,
    WalletBehaviorProfile,
)
from backend_txguard.config.settings import DEFAULT_HISTORY_SIZE, DEFAULT_MAX_WALLETS
from backend_txguard.core.models import TransactionRequest
from backend_txguard.txguard_logging import get_logger, short_id

logger = get_logger(__name__)

# Observations needed before a baseline is trusted; below this every tx is "normal"
MIN_BASELINE_TRANSACTIONS = 3
# Candidate value above baseline max by this ratio counts as a spike
VALUE_SPIKE_RATIO = 3.0
VALUE_SPIKE_BASE_CONFIDENCE = 0.3
VALUE_SPIKE_MAX_EXTRA = 0.3
# Floor for the baseline max so all-zero histories don't divide by zero
VALUE_EPSILON = 0.001
NEW_RECIPIENT_CONFIDENCE = 0.25
UNFAMILIAR_SELECTOR_CONFIDENCE = 0.2

TxLike = TransactionRequest | Mapping[str, Any]


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        v = mapping.get(key)
        if v is not None:
            return v
    return None


def observe(tx: TxLike) -> TransactionObservation:
    """
    Reduce a transaction to the attributes the baseline tracks.

    Accepts a TransactionRequest or a provider record (to/to_address,
    value, data/input). Missing or malformed fields become empty/zero.
    """
    if isinstance(tx, TransactionRequest):
        recipient, value, data = tx.to_address, tx.value, tx.data
    else:
        recipient = _first(tx, "to", "to_address", "toAddress")
        value = _first(tx, "value")
        data = _first(tx, "data", "input")
    return TransactionObservation(
        recipient=str(recipient).lower() if recipient else None,
        value_units=value_to_units(None if value is None else str(value)),
        selector=function_selector(None if data is None else str(data)),
    )


def score_anomaly(
    profile: WalletBehaviorProfile | None,
    candidate: TransactionObservation,
    *,
    min_baseline: int = MIN_BASELINE_TRANSACTIONS,
) -> AnomalyResult:
    """
    Compare one observation against a profile. Deterministic for fixed inputs.

    Each rule contributes independently; contributions grow with distance
    from the baseline and the total is capped at 1.0.
    """
    if profile is None or len(profile.observations) < min_baseline:
        return AnomalyResult(
            is_anomaly=False,
            confidence=0.0,
            explanation="Not enough history to establish a behavioral baseline",
            reasons=["no_baseline_insufficient_history"],
        )

    values = profile.values
    baseline_max = max(values)
    baseline_median = float(statistics.median(values))
    confidence = 0.0
    reasons: list[str] = []
    messages: list[str] = []

    ratio = candidate.value_units / max(baseline_max, VALUE_EPSILON)
    if ratio > VALUE_SPIKE_RATIO:
        confidence += VALUE_SPIKE_BASE_CONFIDENCE + VALUE_SPIKE_MAX_EXTRA * (1 - VALUE_SPIKE_RATIO / ratio)
        reasons.append(f"value_ratio={round(ratio, 2)}")
        messages.append(
            f"value {candidate.value_units:.4f} is {ratio:.1f}x the largest seen ({baseline_max:.4f})"
        )

    if (
        candidate.recipient
        and candidate.recipient not in profile.recipients
        and candidate.value_units > baseline_median
    ):
        confidence += NEW_RECIPIENT_CONFIDENCE
        reasons.append("new_recipient_elevated_value")
        messages.append("first interaction with this recipient at above-typical value")

    if candidate.selector and candidate.selector not in profile.selector_counts:
        confidence += UNFAMILIAR_SELECTOR_CONFIDENCE
        reasons.append(f"unfamiliar_selector={candidate.selector}")
        messages.append(f"contract function {candidate.selector} never used by this wallet")

    if not reasons:
        return AnomalyResult(
            is_anomaly=False,
            confidence=0.0,
            explanation="Transaction matches this wallet's usual behavior",
        )
    confidence = round(min(1.0, confidence), 4)
    return AnomalyResult(
        is_anomaly=True,
        confidence=confidence,
        explanation="Unusual for this wallet: " + "; ".join(messages),
        reasons=reasons,
    )


class PatternLearner:
    """
    Process-wide store of wallet behavior profiles.

    Injected into the prevention engine. Bounded two ways: each profile keeps
    the last history_size observations, and at most max_wallets profiles are
    kept. Eviction is least recently used first; learning and anomaly
    checks both count as use.
    """

    def __init__(
        self,
        *,
        history_size: int = DEFAULT_HISTORY_SIZE,
        max_wallets: int = DEFAULT_MAX_WALLETS,
        min_baseline: int = MIN_BASELINE_TRANSACTIONS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if history_size < 1:
            raise ValueError("history_size must be positive")
        if max_wallets < 1:
            raise ValueError("max_wallets must be positive")
        self._history_size = history_size
        self._max_wallets = max_wallets
        self._min_baseline = min_baseline
        self._clock = clock
        self._profiles: OrderedDict[str, WalletBehaviorProfile] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._profiles

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _evict_if_needed(self) -> None:
        while len(self._profiles) > self._max_wallets:
            evicted = None
            for key in self._profiles:
                lock = self._locks.get(key)
                if lock is None or not lock.locked():
                    evicted = key
                    break
            if evicted is None:
                return
            del self._profiles[evicted]
            self._locks.pop(evicted, None)
            logger.debug("pattern_profile_evicted", wallet_id=short_id(evicted))

    async def learn_from_transactions(
        self,
        address: str,
        transactions: Iterable[TxLike],
    ) -> int:
        """
        Fold a batch of historical transactions into the wallet's baseline.

        Creates the profile on first use. Returns the number of observations
        learned from this batch.
        """
        key = address.lower()
        async with self._lock_for(key):
            now = self._clock()
            profile = self._profiles.get(key)
            if profile is None:
                profile = WalletBehaviorProfile.empty(key, self._history_size, now)
                self._profiles[key] = profile
            learned = 0
            for tx in transactions:
                profile.observations.append(observe(tx))
                learned += 1
            profile.total_learned += learned
            profile.last_seen = now
            self._profiles.move_to_end(key)
        self._evict_if_needed()
        logger.debug(
            "pattern_learned",
            wallet_id=short_id(key),
            learned=learned,
            observations=len(profile.observations),
        )
        return learned

    async def detect_anomaly(self, address: str, tx: TxLike) -> AnomalyResult:
        """Compare a candidate transaction to the wallet's baseline; cold start is never anomalous."""
        key = address.lower()
        candidate = observe(tx)
        if key not in self._profiles:
            return score_anomaly(None, candidate, min_baseline=self._min_baseline)
        async with self._lock_for(key):
            profile = self._profiles.get(key)
            if profile is not None:
                self._profiles.move_to_end(key)
            result = score_anomaly(profile, candidate, min_baseline=self._min_baseline)
        if result.is_anomaly:
            logger.info(
                "behavioral_anomaly_detected",
                wallet_id=short_id(key),
                confidence=result.confidence,
                anomaly_flags=result.reasons,
            )
        return result

    def get_pattern_summary(self, address: str) -> PatternSummary | None:
        """Learned baseline for the wallet, or None if nothing was learned yet."""
        profile = self._profiles.get(address.lower())
        if profile is None or not profile.observations:
            return None
        return PatternSummary.from_profile(profile)
