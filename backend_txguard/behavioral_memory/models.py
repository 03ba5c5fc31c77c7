"""
Data models for wallet behavioral memory.

Per-wallet rolling observation window, anomaly verdict, and learned
baseline summary. All deterministic; no ML.
"""

from __future__ import annotations

import statistics
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TransactionObservation:
    """Attributes of one learned transaction: recipient, unit value, selector."""

    recipient: str | None
    value_units: float
    selector: str | None


@dataclass
class WalletBehaviorProfile:
    """
    Rolling behavioral baseline for one wallet.

    observations is a bounded ring buffer: the oldest observation falls off
    when a new one is learned past capacity. Repeated batches are kept, so
    frequently seen patterns weigh more.
    """

    address: str
    observations: deque[TransactionObservation]
    first_seen: float
    last_seen: float
    total_learned: int = 0

    @classmethod
    def empty(cls, address: str, history_size: int, now: float) -> WalletBehaviorProfile:
        return cls(
            address=address,
            observations=deque(maxlen=history_size),
            first_seen=now,
            last_seen=now,
        )

    @property
    def values(self) -> list[float]:
        return [o.value_units for o in self.observations]

    @property
    def recipients(self) -> set[str]:
        return {o.recipient for o in self.observations if o.recipient}

    @property
    def selector_counts(self) -> Counter[str]:
        return Counter(o.selector for o in self.observations if o.selector)


@dataclass
class AnomalyResult:
    """
    Behavioral anomaly verdict for one candidate transaction.

    confidence is the capped sum of independent rule contributions;
    reasons lists the rule tags that fired.
    """

    is_anomaly: bool
    confidence: float
    explanation: str
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isAnomaly": self.is_anomaly,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "reasons": list(self.reasons),
        }


@dataclass
class PatternSummary:
    """Learned baseline for display alongside wallet analysis."""

    address: str
    observations: int
    total_learned: int
    unique_recipients: int
    min_value: float
    max_value: float
    median_value: float
    top_selectors: list[tuple[str, int]]
    last_seen: float

    @classmethod
    def from_profile(cls, profile: WalletBehaviorProfile, top_n: int = 3) -> PatternSummary:
        values = profile.values or [0.0]
        return cls(
            address=profile.address,
            observations=len(profile.observations),
            total_learned=profile.total_learned,
            unique_recipients=len(profile.recipients),
            min_value=min(values),
            max_value=max(values),
            median_value=float(statistics.median(values)),
            top_selectors=profile.selector_counts.most_common(top_n),
            last_seen=profile.last_seen,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "observations": self.observations,
            "totalLearned": self.total_learned,
            "uniqueRecipients": self.unique_recipients,
            "valueRange": {
                "min": self.min_value,
                "max": self.max_value,
                "median": self.median_value,
            },
            "topSelectors": [{"selector": s, "count": c} for s, c in self.top_selectors],
            "lastSeen": self.last_seen,
        }
