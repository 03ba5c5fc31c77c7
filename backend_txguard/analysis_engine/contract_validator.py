"""
Contract interaction validation: sensitive function selectors and,
optionally, contract verification status from an external source.
"""

from __future__ import annotations

from typing import Protocol

from backend_txguard.analysis_engine.calldata import (
    ERC20_MUTATING_SELECTORS,
    function_selector,
    has_call_data,
)
from backend_txguard.core.models import Severity, ThreatDetection, TransactionRequest
from backend_txguard.txguard_logging import get_logger, short_id

logger = get_logger(__name__)

SOURCE = "contract_validation"


class ContractVerifier(Protocol):
    """Block-explorer style lookup. None means the source has no answer."""

    async def is_verified(self, address: str, chain_id: int) -> bool | None: ...


async def validate_contract_interaction(
    tx: TransactionRequest,
    verifier: ContractVerifier | None = None,
) -> list[ThreatDetection]:
    """
    Flag calls into sensitive ERC-20 functions and, when a verifier is
    configured, calls into contracts it reports as unverified.
    """
    threats: list[ThreatDetection] = []
    if not has_call_data(tx.data):
        return threats

    if function_selector(tx.data) in ERC20_MUTATING_SELECTORS:
        threats.append(
            ThreatDetection(
                type="sensitive_function",
                severity=Severity.MEDIUM,
                description="Transaction calls sensitive token function",
                confidence=0.8,
                source=SOURCE,
            )
        )

    if verifier is not None:
        verified = await verifier.is_verified(tx.to_address, tx.chain_id or 1)
        if verified is False:
            threats.append(
                ThreatDetection(
                    type="unverified_contract",
                    severity=Severity.MEDIUM,
                    description="Target contract source code is not verified",
                    confidence=0.7,
                    source=SOURCE,
                )
            )
            logger.info("contract_unverified", contract=short_id(tx.to_address))
    return threats
