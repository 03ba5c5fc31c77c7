"""
Transaction pre-analysis: static red flags on a single proposed transaction.

Inspects recipient, value and call data only. Pure and stateless; no I/O.
Score contributions and level thresholds are fixed, explainable rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from backend_txguard.analysis_engine.calldata import (
    ERC20_MUTATING_SELECTORS,
    SELECTOR_NAMES,
    function_selector,
    has_call_data,
    value_to_units,
)
from backend_txguard.core.models import TransactionRequest
from backend_txguard.txguard_logging import get_logger, short_id

logger = get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Recipients that are never a legitimate destination for value (burn addresses)
DENYLISTED_RECIPIENTS = frozenset({ZERO_ADDRESS})

DENYLISTED_RECIPIENT_SCORE = 50
CONTRACT_INTERACTION_SCORE = 10
TOKEN_FUNCTION_SCORE = 15
LARGE_VALUE_SCORE = 20
LARGE_VALUE_UNITS = 1.0

CRITICAL_THRESHOLD = 70
HIGH_THRESHOLD = 50
MEDIUM_THRESHOLD = 25


class TransactionRiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


EXPLANATIONS = {
    TransactionRiskLevel.CRITICAL: (
        "🚨 CRITICAL RISK: This transaction has multiple red flags. "
        "Do not proceed unless you are absolutely certain."
    ),
    TransactionRiskLevel.HIGH: (
        "⚠️ HIGH RISK: This transaction shows concerning patterns. "
        "Verify all details carefully before proceeding."
    ),
    TransactionRiskLevel.MEDIUM: (
        "⚡ MODERATE RISK: This transaction requires attention. "
        "Review the warnings and proceed with caution."
    ),
    TransactionRiskLevel.LOW: (
        "✅ LOW RISK: This transaction appears safe, but always verify the recipient address."
    ),
}


@dataclass
class TransactionRisk:
    """
    Static risk assessment for one transaction.

    warnings and recommendations are human-readable and ordered by rule.
    should_proceed is False only for CRITICAL.
    """

    risk_level: TransactionRiskLevel
    risk_score: int
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    explanation: str = ""
    should_proceed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "riskLevel": self.risk_level.value,
            "riskScore": self.risk_score,
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "explanation": self.explanation,
            "shouldProceed": self.should_proceed,
        }


def classify_transaction_score(score: int) -> TransactionRiskLevel:
    if score >= CRITICAL_THRESHOLD:
        return TransactionRiskLevel.CRITICAL
    if score >= HIGH_THRESHOLD:
        return TransactionRiskLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return TransactionRiskLevel.MEDIUM
    return TransactionRiskLevel.LOW


def analyze_transaction(tx: TransactionRequest) -> TransactionRisk:
    """
    Score a transaction's static shape for known red-flag patterns.

    Rules (independent, additive):
        1. recipient on the burn-address denylist: +50
        2. non-empty call data: +10; leading selector is transfer/approve/transferFrom: +15
        3. value above 1.0 unit: +20
    Malformed value or data count as absent.
    """
    warnings: list[str] = []
    recommendations: list[str] = []
    score = 0

    recipient = (tx.to_address or "").lower()
    if recipient in DENYLISTED_RECIPIENTS:
        warnings.append("⚠️ Sending to known burn/scam address")
        score += DENYLISTED_RECIPIENT_SCORE

    if has_call_data(tx.data):
        warnings.append("📜 Interacting with smart contract")
        score += CONTRACT_INTERACTION_SCORE
        if function_selector(tx.data) in ERC20_MUTATING_SELECTORS:
            warnings.append("🔐 Token approval or transfer detected")
            score += TOKEN_FUNCTION_SCORE
            recommendations.append("Verify the contract address and amount carefully")

    units = value_to_units(tx.value)
    if units > LARGE_VALUE_UNITS:
        warnings.append(f"💰 Large transaction: {units:.4f} ETH")
        score += LARGE_VALUE_SCORE
        recommendations.append("Double-check the recipient address")

    level = classify_transaction_score(score)
    risk = TransactionRisk(
        risk_level=level,
        risk_score=score,
        warnings=warnings,
        recommendations=recommendations,
        explanation=EXPLANATIONS[level],
        should_proceed=level != TransactionRiskLevel.CRITICAL,
    )
    logger.debug(
        "transaction_analyzed",
        to=short_id(tx.to_address),
        risk_score=score,
        risk_level=level.value,
        warnings=len(warnings),
    )
    return risk


def _short(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def explain_transaction(tx: TransactionRequest) -> str:
    """Plain-English summary: sender, recipient, amount and action (by selector)."""
    parts = [
        f"**From:** {_short(tx.from_address)}",
        f"**To:** {_short(tx.to_address)}",
    ]
    units = value_to_units(tx.value)
    if units > 0:
        parts.append(f"**Amount:** {units:.6f} ETH")
    if has_call_data(tx.data):
        name = SELECTOR_NAMES.get(function_selector(tx.data) or "", "Unknown contract interaction")
        parts.append(f"**Action:** {name}")
    else:
        parts.append("**Action:** Simple ETH transfer")
    return "\n".join(parts)
