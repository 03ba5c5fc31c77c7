# Wallet behavioral memory: rolling observation window, baseline, anomaly check.
# Statistical only; no ML.

from backend_txguard.behavioral_memory.models import (
    AnomalyResult,
    PatternSummary,
    TransactionObservation,
    WalletBehaviorProfile,
)
from backend_txguard.behavioral_memory.engine import (
    PatternLearner,
    observe,
    score_anomaly,
)

__all__ = [
    "AnomalyResult",
    "PatternLearner",
    "PatternSummary",
    "TransactionObservation",
    "WalletBehaviorProfile",
    "observe",
    "score_anomaly",
]
