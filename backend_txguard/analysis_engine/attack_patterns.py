"""
Heuristic attack-shape scan over a transaction and its simulated execution.

Triage, not verification: every rule is evaluated independently and may
fire together. False positives are acceptable here.
"""

from __future__ import annotations

from backend_txguard.analysis_engine.calldata import (
    MAX_UINT256,
    SELECTOR_APPROVE,
    SELECTOR_TRANSFER_FROM,
    call_argument_word,
    contains_selector,
    function_selector,
    value_to_units,
)
from backend_txguard.core.models import (
    Severity,
    SimulationResult,
    ThreatDetection,
    TransactionRequest,
)
from backend_txguard.txguard_logging import get_logger

logger = get_logger(__name__)

SOURCE = "pattern_detection"

REENTRANCY_CALL_THRESHOLD = 10
FRONTRUN_VALUE_UNITS = 0.1


def _check_phishing(tx: TransactionRequest) -> ThreatDetection | None:
    if not contains_selector(tx.data, SELECTOR_TRANSFER_FROM):
        return None
    return ThreatDetection(
        type="potential_phishing",
        severity=Severity.HIGH,
        description="Transaction may be attempting to transfer your tokens",
        confidence=0.75,
        source=SOURCE,
    )


def _check_reentrancy(simulation: SimulationResult | None) -> ThreatDetection | None:
    if simulation is None or len(simulation.calls) <= REENTRANCY_CALL_THRESHOLD:
        return None
    return ThreatDetection(
        type="potential_reentrancy",
        severity=Severity.MEDIUM,
        description="Multiple nested calls detected - possible reentrancy",
        confidence=0.65,
        source=SOURCE,
    )


def _check_frontrun(tx: TransactionRequest) -> ThreatDetection | None:
    if value_to_units(tx.value) <= FRONTRUN_VALUE_UNITS:
        return None
    return ThreatDetection(
        type="frontrun_risk",
        severity=Severity.LOW,
        description="High-value transaction may be vulnerable to front-running",
        confidence=0.5,
        source=SOURCE,
    )


def _simulated_unlimited_approval(simulation: SimulationResult | None) -> bool:
    if simulation is None:
        return False
    return any(
        change.type == "approval" and change.value == "unlimited"
        for change in simulation.balance_changes
    )


def _check_approval_drain(
    tx: TransactionRequest,
    simulation: SimulationResult | None,
) -> ThreatDetection | None:
    """approve() granting an unbounded allowance: the classic drainer setup."""
    if function_selector(tx.data) != SELECTOR_APPROVE:
        return None
    unlimited_amount = call_argument_word(tx.data, 1) == MAX_UINT256
    if not (unlimited_amount or _simulated_unlimited_approval(simulation)):
        return None
    return ThreatDetection(
        type="approval_drain",
        severity=Severity.HIGH,
        description="Unlimited token approval lets the spender drain this token balance at any time",
        confidence=0.85,
        source=SOURCE,
    )


def detect_attack_patterns(
    tx: TransactionRequest,
    simulation: SimulationResult | None,
) -> list[ThreatDetection]:
    """Run every attack-shape rule; return detections in rule order."""
    candidates = (
        _check_phishing(tx),
        _check_reentrancy(simulation),
        _check_frontrun(tx),
        _check_approval_drain(tx, simulation),
    )
    detections = [d for d in candidates if d is not None]
    if detections:
        logger.debug("attack_patterns_detected", types=[d.type for d in detections])
    return detections
