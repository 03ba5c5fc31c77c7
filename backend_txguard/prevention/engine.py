"""
Threat prevention orchestrator: multi-layer pre-execution check → allow/block.

One linear pipeline per evaluation:

    SIMULATE ∥ INTEL_CHECK
      → STATIC_ANALYSIS ∥ ANOMALY_CHECK ∥ ATTACK_PATTERN_SCAN ∥ CONTRACT_VALIDATION
      → AGGREGATE → DECIDE

Each layer contributes detections and a non-negative score delta. Any
exception (collaborator failure, timeout, malformed payload, invalid input,
internal error) fails the evaluation closed: inability to assess risk is
treated as maximal risk. evaluate() never raises.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from backend_txguard.analysis_engine.attack_patterns import detect_attack_patterns
from backend_txguard.analysis_engine.calldata import has_call_data
from backend_txguard.analysis_engine.contract_validator import (
    ContractVerifier,
    validate_contract_interaction,
)
from backend_txguard.analysis_engine.transaction_analyzer import analyze_transaction
from backend_txguard.behavioral_memory.engine import PatternLearner
from backend_txguard.behavioral_memory.models import AnomalyResult
from backend_txguard.config.settings import GuardSettings, get_settings
from backend_txguard.core.exceptions import (
    InvalidTransactionError,
    SimulationError,
    ThreatFeedError,
)
from backend_txguard.core.models import (
    RiskLevel,
    Severity,
    SimulationRequest,
    SimulationResult,
    ThreatDetection,
    ThreatPreventionResult,
    TransactionRequest,
)
from backend_txguard.prevention.scoring import (
    DEFAULT_SCORING,
    ScoringConfig,
    calculate_risk_level,
    detect_suspicious_state_changes,
    should_allow_transaction,
)
from backend_txguard.simulation.client import (
    HttpTransactionSimulator,
    TransactionSimulator,
    parse_simulation_payload,
)
from backend_txguard.threat_intel.checker import ThreatIntelligence
from backend_txguard.threat_intel.feeds import HttpThreatFeed, ThreatRecord
from backend_txguard.txguard_logging import bind_evaluation, get_logger, short_id

logger = get_logger(__name__)

BLOCKED_BANNER = "🛑 TRANSACTION BLOCKED FOR YOUR SAFETY"
CAUTION_BANNER = "⚠️ Proceed with caution - review all details carefully"
LOW_RISK_BANNER = "✅ Transaction appears safe, but always verify details"
SAFE_BANNER = "✅ No significant threats detected"

SIMULATION_FAILED_RECOMMENDATION = "❌ Do not proceed - transaction will fail"
INTEL_HIT_RECOMMENDATION = "⚠️ Address flagged in threat intelligence database"
ANOMALY_RECOMMENDATION = "⚠️ Transaction pattern differs from your normal behavior"

FAIL_CLOSED_SCORE = 100
FAIL_CLOSED_RECOMMENDATIONS = (
    "🛑 TRANSACTION BLOCKED",
    "Security analysis failed - do not proceed",
    "Try again or contact support",
)
FAIL_CLOSED_REASON = "Security analysis system error"


def fail_closed_result() -> ThreatPreventionResult:
    """Synthetic ERROR_BLOCKED result: generic message only, no internals."""
    return ThreatPreventionResult(
        allowed=False,
        risk_level=RiskLevel.CRITICAL,
        risk_score=FAIL_CLOSED_SCORE,
        threats=[
            ThreatDetection(
                type="analysis_error",
                severity=Severity.CRITICAL,
                description="Unable to complete security analysis",
                confidence=1.0,
                source="system",
            )
        ],
        recommendations=list(FAIL_CLOSED_RECOMMENDATIONS),
        simulation_result=None,
        blocked_reasons=[FAIL_CLOSED_REASON],
    )


@dataclass
class _Assessment:
    """Accumulates detections, recommendations and score across layers. Score never decreases."""

    threats: list[ThreatDetection] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    score: int = 0

    def add(self, detections: list[ThreatDetection], penalty: int) -> None:
        if penalty < 0:
            raise ValueError("layer penalties must be non-negative")
        self.threats.extend(detections)
        self.score += penalty

    def recommend(self, *items: str) -> None:
        self.recommendations.extend(items)


async def _gather_or_cancel(*coros: Any) -> list[Any]:
    """gather() that cancels and drains the sibling tasks as soon as one of them fails."""
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        return await asyncio.gather(*tasks)
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def _coerce_request(transaction: TransactionRequest | Mapping[str, Any]) -> TransactionRequest:
    if isinstance(transaction, TransactionRequest):
        return transaction
    if not isinstance(transaction, Mapping):
        raise InvalidTransactionError(f"unsupported transaction type: {type(transaction).__name__}")
    try:
        return TransactionRequest.model_validate(dict(transaction))
    except ValidationError as e:
        raise InvalidTransactionError(f"invalid transaction: {e.error_count()} error(s)") from e


class ThreatPreventionEngine:
    """
    Runs every security layer for a proposed transaction and decides allow/block.

    Collaborators are injected: a simulator, the threat intelligence checker,
    the shared pattern learner, and an optional contract verifier.
    """

    def __init__(
        self,
        simulator: TransactionSimulator,
        threat_intel: ThreatIntelligence,
        pattern_learner: PatternLearner | None = None,
        *,
        contract_verifier: ContractVerifier | None = None,
        scoring: ScoringConfig | None = None,
        timeout_sec: float = 10.0,
    ) -> None:
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")
        self._simulator = simulator
        self._intel = threat_intel
        self._learner = pattern_learner if pattern_learner is not None else PatternLearner()
        self._verifier = contract_verifier
        self._scoring = scoring if scoring is not None else DEFAULT_SCORING
        self._timeout = timeout_sec

    @classmethod
    def from_settings(
        cls,
        settings: GuardSettings | None = None,
        *,
        simulator: TransactionSimulator | None = None,
        contract_verifier: ContractVerifier | None = None,
    ) -> ThreatPreventionEngine:
        """Wire the engine from configuration: HTTP simulator, denylist + feeds, bounded learner."""
        cfg = settings or get_settings()
        if simulator is None:
            if not cfg.simulator_url:
                raise ValueError("SIMULATOR_URL is not configured and no simulator was given")
            simulator = HttpTransactionSimulator(
                cfg.simulator_url,
                api_key=cfg.simulator_api_key,
                timeout_sec=cfg.collaborator_timeout_sec,
            )
        feeds = [HttpThreatFeed(url, timeout_sec=cfg.collaborator_timeout_sec) for url in cfg.threat_feed_urls]
        return cls(
            simulator,
            ThreatIntelligence(denylist_path=cfg.denylist_path, feeds=feeds),
            PatternLearner(history_size=cfg.history_size, max_wallets=cfg.max_wallets),
            contract_verifier=contract_verifier,
            scoring=ScoringConfig(large_transfer_threshold=cfg.large_transfer_threshold),
            timeout_sec=cfg.collaborator_timeout_sec,
        )

    @property
    def pattern_learner(self) -> PatternLearner:
        return self._learner

    @property
    def threat_intel(self) -> ThreatIntelligence:
        return self._intel

    async def evaluate(
        self,
        transaction: TransactionRequest | Mapping[str, Any],
        wallet_address: str,
    ) -> ThreatPreventionResult:
        """
        Assess a proposed transaction for wallet_address and decide allow/block.

        Always returns a well-formed result; failures become the fail-closed result.
        """
        try:
            tx = _coerce_request(transaction)
            if not isinstance(wallet_address, str) or not wallet_address.strip():
                raise InvalidTransactionError("wallet address is required")
            return await self._run_pipeline(tx, wallet_address.strip())
        except InvalidTransactionError as e:
            logger.warning("threat_prevention_invalid_input", error=str(e))
        except Exception as e:
            logger.exception(
                "threat_prevention_failed",
                wallet_id=short_id(wallet_address if isinstance(wallet_address, str) else None),
                error_type=type(e).__name__,
                error=str(e),
            )
        return fail_closed_result()

    async def _simulate(self, tx: TransactionRequest) -> SimulationResult:
        request = SimulationRequest.from_transaction(tx)
        try:
            raw = await asyncio.wait_for(self._simulator.simulate(request), self._timeout)
        except asyncio.TimeoutError as e:
            raise SimulationError(f"simulation timed out after {self._timeout}s") from e
        return parse_simulation_payload(raw)

    async def _check_intel(self, tx: TransactionRequest) -> list[ThreatRecord]:
        try:
            return await asyncio.wait_for(
                self._intel.check_wallet_threats(tx.to_address, [], []),
                self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ThreatFeedError(f"threat intelligence timed out after {self._timeout}s") from e

    async def _validate_contract(self, tx: TransactionRequest) -> list[ThreatDetection]:
        if not has_call_data(tx.data):
            return []
        return await asyncio.wait_for(
            validate_contract_interaction(tx, self._verifier),
            self._timeout,
        )

    def _apply_simulation(self, acc: _Assessment, simulation: SimulationResult) -> None:
        cfg = self._scoring
        if not simulation.success:
            acc.add(
                [
                    ThreatDetection(
                        type="simulation_failure",
                        severity=Severity.HIGH,
                        description=f"Transaction will fail: {simulation.error or 'Unknown error'}",
                        confidence=0.95,
                        source="simulation",
                    )
                ],
                cfg.simulation_failure,
            )
            acc.recommend(SIMULATION_FAILED_RECOMMENDATION)
        flagged = detect_suspicious_state_changes(simulation.balance_changes, cfg)
        acc.add(flagged, len(flagged) * cfg.per_state_change)

    def _apply_intel(self, acc: _Assessment, records: list[ThreatRecord]) -> None:
        if not records:
            return
        for record in records:
            acc.add(
                [
                    ThreatDetection(
                        type="known_threat",
                        severity=record.severity,
                        description=record.description,
                        confidence=0.9,
                        source="threat_intelligence",
                    )
                ],
                self._scoring.intel_penalty(record.severity),
            )
        acc.recommend(INTEL_HIT_RECOMMENDATION)

    def _apply_static(self, acc: _Assessment, tx: TransactionRequest) -> None:
        risk = analyze_transaction(tx)
        if risk.risk_score > self._scoring.static_analysis_trigger:
            acc.add(
                [
                    ThreatDetection(
                        type="high_risk_transaction",
                        severity=Severity.HIGH,
                        description=risk.explanation,
                        confidence=0.85,
                        source="transaction_analyzer",
                    )
                ],
                self._scoring.static_analysis_penalty,
            )
        acc.recommend(*risk.recommendations)

    def _apply_anomaly(self, acc: _Assessment, anomaly: AnomalyResult) -> None:
        if not anomaly.is_anomaly:
            return
        high = anomaly.confidence > self._scoring.anomaly_high_confidence
        acc.add(
            [
                ThreatDetection(
                    type="behavioral_anomaly",
                    severity=Severity.HIGH if high else Severity.MEDIUM,
                    description=anomaly.explanation,
                    confidence=anomaly.confidence,
                    source="pattern_learner",
                )
            ],
            self._scoring.anomaly_high if high else self._scoring.anomaly_medium,
        )
        acc.recommend(ANOMALY_RECOMMENDATION)

    def _decide(
        self,
        acc: _Assessment,
        simulation: SimulationResult,
    ) -> ThreatPreventionResult:
        risk_level = calculate_risk_level(acc.score, self._scoring)
        allowed = should_allow_transaction(risk_level, acc.threats, self._scoring)
        if not allowed:
            blocked_reasons = [
                t.description
                for t in acc.threats
                if t.severity in (Severity.CRITICAL, Severity.HIGH)
            ]
            return ThreatPreventionResult(
                allowed=False,
                risk_level=risk_level,
                risk_score=acc.score,
                threats=acc.threats,
                recommendations=[BLOCKED_BANNER, *blocked_reasons, *acc.recommendations],
                simulation_result=simulation,
                blocked_reasons=blocked_reasons,
            )
        if risk_level in (RiskLevel.MEDIUM, RiskLevel.HIGH):
            banner = CAUTION_BANNER
        elif risk_level == RiskLevel.LOW:
            banner = LOW_RISK_BANNER
        else:
            banner = SAFE_BANNER
        return ThreatPreventionResult(
            allowed=True,
            risk_level=risk_level,
            risk_score=acc.score,
            threats=acc.threats,
            recommendations=[banner, *acc.recommendations],
            simulation_result=simulation,
        )

    async def _run_pipeline(self, tx: TransactionRequest, wallet_address: str) -> ThreatPreventionResult:
        log = bind_evaluation(wallet_address, to=short_id(tx.to_address))
        acc = _Assessment()

        simulation, intel_records = await _gather_or_cancel(
            self._simulate(tx),
            self._check_intel(tx),
        )
        self._apply_simulation(acc, simulation)
        self._apply_intel(acc, intel_records)
        log.debug("threat_prevention_layer", layer="simulate+intel", risk_score=acc.score)

        anomaly, contract_threats = await _gather_or_cancel(
            self._learner.detect_anomaly(wallet_address, tx),
            self._validate_contract(tx),
        )
        self._apply_static(acc, tx)
        self._apply_anomaly(acc, anomaly)
        attack_threats = detect_attack_patterns(tx, simulation)
        acc.add(attack_threats, len(attack_threats) * self._scoring.per_attack_pattern)
        acc.add(contract_threats, len(contract_threats) * self._scoring.per_contract_threat)
        log.debug("threat_prevention_layer", layer="analysis", risk_score=acc.score)

        result = self._decide(acc, simulation)
        log.info(
            "threat_prevention_decision",
            allowed=result.allowed,
            risk_level=result.risk_level.value,
            risk_score=result.risk_score,
            threats=[t.type for t in result.threats],
        )
        return result
