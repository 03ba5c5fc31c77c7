"""
Transaction simulator collaborator.

The prevention engine depends only on the TransactionSimulator protocol.
HttpTransactionSimulator is a thin httpx adapter for a simulation service
that accepts {from, to, value, data, chainId} and answers with
{success, error, balanceChanges, calls}.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from backend_txguard.core.exceptions import SimulationError
from backend_txguard.core.models import SimulationRequest, SimulationResult
from backend_txguard.txguard_logging import get_logger, short_id

logger = get_logger(__name__)


class TransactionSimulator(Protocol):
    """Dry-runs a transaction. Raises SimulationError when it cannot produce a result."""

    async def simulate(self, request: SimulationRequest) -> SimulationResult: ...


def parse_simulation_payload(payload: Any) -> SimulationResult:
    """Validate a raw simulator payload; malformed payloads raise SimulationError."""
    if isinstance(payload, SimulationResult):
        return payload
    try:
        return SimulationResult.model_validate(payload)
    except ValidationError as e:
        raise SimulationError(f"malformed simulation payload: {e.error_count()} error(s)") from e


class HttpTransactionSimulator:
    """POST the normalized request to the simulation endpoint and validate the answer."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout_sec: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url.strip():
            raise ValueError("url must be non-empty")
        self._url = url.rstrip("/")
        self._headers = {"X-Access-Key": api_key} if api_key else {}
        self._timeout = timeout_sec
        self._client = client

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self._url, json=body, headers=self._headers, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._url, json=body, headers=self._headers)

    async def simulate(self, request: SimulationRequest) -> SimulationResult:
        body = request.to_wire()
        try:
            resp = await self._post(body)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as e:
            raise SimulationError(f"simulation request failed: {e}") from e
        except ValueError as e:
            raise SimulationError(f"simulation response is not JSON: {e}") from e
        result = parse_simulation_payload(payload)
        logger.debug(
            "simulation_completed",
            to=short_id(request.to_address),
            chain_id=request.chain_id,
            success=result.success,
            state_changes=len(result.balance_changes),
            calls=len(result.calls),
        )
        return result
