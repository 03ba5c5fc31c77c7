"""
Analysis engine package: stateless per-transaction risk layers.

Static red-flag scoring, attack-shape heuristics over the simulated
execution, and contract interaction validation. No shared state; every
function is safe to call concurrently.
"""

from backend_txguard.analysis_engine.attack_patterns import detect_attack_patterns
from backend_txguard.analysis_engine.contract_validator import (
    ContractVerifier,
    validate_contract_interaction,
)
from backend_txguard.analysis_engine.transaction_analyzer import (
    TransactionRisk,
    TransactionRiskLevel,
    analyze_transaction,
    explain_transaction,
)

__all__ = [
    "ContractVerifier",
    "TransactionRisk",
    "TransactionRiskLevel",
    "analyze_transaction",
    "detect_attack_patterns",
    "explain_transaction",
    "validate_contract_interaction",
]
