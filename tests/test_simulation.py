"""
Tests for the simulator collaborator: payload validation and the httpx adapter.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from backend_txguard.core.exceptions import SimulationError
from backend_txguard.core.models import SimulationRequest, SimulationResult, TransactionRequest
from backend_txguard.simulation import HttpTransactionSimulator, parse_simulation_payload
from conftest import RECIPIENT, WALLET, make_tx


def test_simulation_request_defaults():
    tx = TransactionRequest.model_validate({"from": WALLET, "to": RECIPIENT})
    request = SimulationRequest.from_transaction(tx)
    assert request.to_wire() == {"from": WALLET, "to": RECIPIENT, "value": "0", "data": "0x", "chainId": 1}


def test_simulation_request_keeps_given_fields():
    tx = TransactionRequest.model_validate(make_tx(value="0x10", data="0xdeadbeef", chainId="0x89"))
    request = SimulationRequest.from_transaction(tx)
    assert (request.value, request.data, request.chain_id) == ("0x10", "0xdeadbeef", 137)


def test_parse_payload_accepts_wire_shape():
    result = parse_simulation_payload({
        "success": False,
        "error": "execution reverted",
        "balanceChanges": [{"type": "balance_change", "value": 1500}, {"type": "approval", "value": None}],
        "calls": [{"to": RECIPIENT, "calls": [{"to": WALLET}]}],
        "gasUsed": 21000,
    })
    assert result.success is False
    assert result.balance_changes[0].value == "1500"
    assert result.balance_changes[1].value == ""
    assert result.calls[0].calls[0].to_address == WALLET


@pytest.mark.parametrize("payload", [None, "ok", {"error": "no success flag"}, {"success": True, "calls": 3}])
def test_parse_payload_rejects_malformed(payload):
    with pytest.raises(SimulationError):
        parse_simulation_payload(payload)


def _simulate(handler, **kwargs) -> SimulationResult:
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            sim = HttpTransactionSimulator("https://sim.example/simulate", client=client, **kwargs)
            tx = TransactionRequest.model_validate(make_tx(value="0x1"))
            return await sim.simulate(SimulationRequest.from_transaction(tx))

    return asyncio.run(run())


def test_http_simulator_posts_request_and_parses():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["key"] = request.headers.get("X-Access-Key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "balanceChanges": [{"type": "approval", "value": "unlimited"}]})

    result = _simulate(handler, api_key="secret")
    assert seen["method"] == "POST"
    assert seen["key"] == "secret"
    assert seen["body"] == {"from": WALLET, "to": RECIPIENT, "value": "0x1", "data": "0x", "chainId": 1}
    assert result.success is True
    assert result.balance_changes[0].type == "approval"


def test_http_simulator_omits_key_when_unset():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.headers.get("X-Access-Key")
        return httpx.Response(200, json={"success": True})

    _simulate(handler)
    assert seen["key"] is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(502),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"balanceChanges": []}),
    ],
)
def test_http_simulator_failures_raise(response):
    with pytest.raises(SimulationError):
        _simulate(lambda request: response)


def test_http_simulator_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(SimulationError) as exc:
        _simulate(handler)
    assert exc.value.collaborator == "simulator"


def test_http_simulator_requires_url():
    with pytest.raises(ValueError):
        HttpTransactionSimulator("  ")


def test_parse_payload_tolerates_object_shaped_amounts():
    result = parse_simulation_payload({
        "success": True,
        "balanceChanges": [{"type": "balance_change", "value": {"hex": "0x10"}}],
        "calls": [{"to": RECIPIENT, "value": ["0x1"]}],
    })
    assert result.balance_changes[0].value == ""
    assert result.calls[0].value is None
