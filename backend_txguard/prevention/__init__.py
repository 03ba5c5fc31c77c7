"""
Threat prevention: the orchestrator that runs every security layer for a
proposed transaction and renders the allow/block decision.
"""

from backend_txguard.prevention.engine import ThreatPreventionEngine, fail_closed_result
from backend_txguard.prevention.scoring import (
    DEFAULT_SCORING,
    ScoringConfig,
    calculate_risk_level,
    detect_suspicious_state_changes,
    should_allow_transaction,
)

__all__ = [
    "DEFAULT_SCORING",
    "ScoringConfig",
    "ThreatPreventionEngine",
    "calculate_risk_level",
    "detect_suspicious_state_changes",
    "fail_closed_result",
    "should_allow_transaction",
]
