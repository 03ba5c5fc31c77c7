"""
Shared data models for the threat prevention pipeline.

Boundary inputs (transaction requests, simulator payloads) are pydantic
models validated on entry; unknown fields are dropped there. Pipeline
outputs (detections, final result) are plain dataclasses with to_dict()
for API exposure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
_ADDRESS_RE = re.compile(ADDRESS_PATTERN)


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    """Final classification of an evaluation, from the accumulated score."""

    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def is_address(value: str | None) -> bool:
    """True if value is a 20-byte hex address (0x + 40 hex chars)."""
    return bool(value) and _ADDRESS_RE.match(value) is not None


def _coerce_to_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    # Containers and objects are not a value encoding; treat the optional field as absent
    return None


class TransactionRequest(BaseModel):
    """
    Proposed (unsent) transaction.

    from/to are required and must be 20-byte hex addresses. value and data
    are accepted as given; helpers in analysis_engine.calldata normalize
    malformed values to zero/empty instead of rejecting them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    from_address: str = Field(..., alias="from", pattern=ADDRESS_PATTERN)
    to_address: str = Field(..., alias="to", pattern=ADDRESS_PATTERN)
    value: str | None = Field(None, description="Hex wei (0x...) or decimal unit amount")
    data: str | None = Field(None, description="Call data; leading 4 bytes are the selector")
    chain_id: int | None = Field(None, alias="chainId")

    @field_validator("value", "data", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return _coerce_to_str(v)

    @field_validator("chain_id", mode="before")
    @classmethod
    def _lenient_chain_id(cls, v: Any) -> Any:
        # Optional field: an unparseable chain id falls back to the default chain.
        if v is None or isinstance(v, int):
            return v
        try:
            return int(str(v), 0)
        except (TypeError, ValueError):
            return None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class StateChange(BaseModel):
    """One effect observed by the simulator (approval, ownership_transfer, balance_change, ...)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        coerced = _coerce_to_str(v)
        return "" if coerced is None else coerced


class SimulatedCall(BaseModel):
    """Nested call record from a simulation trace."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    from_address: str | None = Field(None, alias="from")
    to_address: str | None = Field(None, alias="to")
    input: str | None = None
    value: str | None = None
    calls: list[SimulatedCall] = Field(default_factory=list)

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return _coerce_to_str(v)


class SimulationResult(BaseModel):
    """
    Collaborator-produced simulation evidence. Read-only.

    A payload that does not validate into this model is a collaborator failure.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    success: bool
    error: str | None = None
    balance_changes: list[StateChange] = Field(default_factory=list, alias="balanceChanges")
    calls: list[SimulatedCall] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class SimulationRequest:
    """Normalized simulator input; defaults applied (value "0", data "0x", chain 1)."""

    from_address: str
    to_address: str
    value: str = "0"
    data: str = "0x"
    chain_id: int = 1

    @classmethod
    def from_transaction(cls, tx: TransactionRequest) -> SimulationRequest:
        return cls(
            from_address=tx.from_address,
            to_address=tx.to_address,
            value=tx.value or "0",
            data=tx.data or "0x",
            chain_id=tx.chain_id or 1,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "data": self.data,
            "chainId": self.chain_id,
        }


@dataclass(frozen=True)
class ThreatDetection:
    """
    Single explainable threat raised by one layer.

    source names the emitting layer; detections are never deduplicated so
    each layer's independent judgment stays auditable.
    """

    type: str
    severity: Severity
    description: str
    confidence: float
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "description": self.description,
            "confidence": self.confidence,
            "source": self.source,
        }


@dataclass
class ThreatPreventionResult:
    """
    Terminal artifact of one evaluation. Created fresh per call; never persisted here.

    risk_score is unbounded upward; risk_level comes from the classification thresholds.
    """

    allowed: bool
    risk_level: RiskLevel
    risk_score: int
    threats: list[ThreatDetection] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    simulation_result: SimulationResult | None = None
    blocked_reasons: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "allowed": self.allowed,
            "riskLevel": self.risk_level.value,
            "riskScore": self.risk_score,
            "threats": [t.to_dict() for t in self.threats],
            "recommendations": list(self.recommendations),
        }
        if self.simulation_result is not None:
            out["simulationResult"] = self.simulation_result.to_wire()
        if self.blocked_reasons is not None:
            out["blockedReasons"] = list(self.blocked_reasons)
        return out
