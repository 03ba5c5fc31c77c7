"""
Scoring rules for threat prevention: per-layer penalties, risk level
thresholds, and the allow/block decision.

The weights are a heuristic convention (independently chosen point values,
thresholds chosen by inspection), not a calibrated model. Change them only
as a product decision.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from backend_txguard.analysis_engine.calldata import parse_amount
from backend_txguard.config.settings import DEFAULT_LARGE_TRANSFER_THRESHOLD
from backend_txguard.core.models import (
    RiskLevel,
    Severity,
    StateChange,
    ThreatDetection,
)


@dataclass(frozen=True)
class ScoringConfig:
    """Named penalties and thresholds. Defaults are the production constants."""

    simulation_failure: int = 40
    per_state_change: int = 15
    intel_critical: int = 50
    intel_high: int = 35
    intel_other: int = 20
    static_analysis_trigger: int = 70
    """Analyzer sub-score must exceed this to raise a high_risk_transaction."""
    static_analysis_penalty: int = 30
    anomaly_high_confidence: float = 0.7
    anomaly_high: int = 25
    anomaly_medium: int = 15
    per_attack_pattern: int = 20
    per_contract_threat: int = 15

    critical_at: int = 80
    high_at: int = 60
    medium_at: int = 40
    low_at: int = 20

    large_transfer_threshold: float = DEFAULT_LARGE_TRANSFER_THRESHOLD
    high_threats_to_block: int = 2

    def intel_penalty(self, severity: Severity) -> int:
        if severity == Severity.CRITICAL:
            return self.intel_critical
        if severity == Severity.HIGH:
            return self.intel_high
        return self.intel_other


DEFAULT_SCORING = ScoringConfig()


def calculate_risk_level(score: int, config: ScoringConfig = DEFAULT_SCORING) -> RiskLevel:
    if score >= config.critical_at:
        return RiskLevel.CRITICAL
    if score >= config.high_at:
        return RiskLevel.HIGH
    if score >= config.medium_at:
        return RiskLevel.MEDIUM
    if score >= config.low_at:
        return RiskLevel.LOW
    return RiskLevel.SAFE


def should_allow_transaction(
    risk_level: RiskLevel,
    threats: Sequence[ThreatDetection],
    config: ScoringConfig = DEFAULT_SCORING,
) -> bool:
    """
    Block on critical level, on any critical detection, or on two or more
    high detections, whatever the numeric score.
    """
    if risk_level == RiskLevel.CRITICAL:
        return False
    if any(t.severity == Severity.CRITICAL for t in threats):
        return False
    high = sum(1 for t in threats if t.severity == Severity.HIGH)
    return high < config.high_threats_to_block


def detect_suspicious_state_changes(
    changes: Sequence[StateChange],
    config: ScoringConfig = DEFAULT_SCORING,
) -> list[ThreatDetection]:
    """Hard signals: unlimited approval, ownership transfer. Soft: balance change over threshold."""
    threats: list[ThreatDetection] = []
    for change in changes:
        if change.type == "approval" and change.value == "unlimited":
            threats.append(
                ThreatDetection(
                    type="unlimited_approval",
                    severity=Severity.HIGH,
                    description="Transaction requests unlimited token approval",
                    confidence=0.95,
                    source="simulation",
                )
            )
        elif change.type == "ownership_transfer":
            threats.append(
                ThreatDetection(
                    type="ownership_change",
                    severity=Severity.CRITICAL,
                    description="Transaction will transfer ownership of assets",
                    confidence=0.98,
                    source="simulation",
                )
            )
        elif change.type == "balance_change":
            amount = parse_amount(change.value)
            if amount is not None and amount > config.large_transfer_threshold:
                threats.append(
                    ThreatDetection(
                        type="large_transfer",
                        severity=Severity.MEDIUM,
                        description=f"Large value transfer detected: {change.value}",
                        confidence=0.9,
                        source="simulation",
                    )
                )
    return threats
