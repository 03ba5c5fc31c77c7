"""
Tests for static transaction analysis (analyze_transaction, explain_transaction)
and the call data / value normalization helpers behind it.
"""

from __future__ import annotations

import sys

import pytest

from backend_txguard.analysis_engine.calldata import (
    MAX_UINT256,
    SELECTOR_APPROVE,
    call_argument_word,
    contains_selector,
    function_selector,
    has_call_data,
    parse_amount,
    value_to_units,
)
from backend_txguard.analysis_engine.transaction_analyzer import (
    EXPLANATIONS,
    TransactionRiskLevel,
    analyze_transaction,
    classify_transaction_score,
    explain_transaction,
)
from backend_txguard.core.models import TransactionRequest
from conftest import RECIPIENT, ZERO_ADDRESS, make_tx

APPROVE_UNLIMITED = SELECTOR_APPROVE + "0" * 24 + "3" * 40 + "f" * 64


def _tx(**kwargs) -> TransactionRequest:
    return TransactionRequest.model_validate(make_tx(**kwargs))


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("0xde0b6b3a7640000", 1.0),
        ("0x0", 0.0),
        ("2.5", 2.5),
        ("", 0.0),
        (None, 0.0),
        ("abc", 0.0),
        ("-3", 0.0),
        ("NaN", 0.0),
        ("0xzz", 0.0),
    ],
)
def test_value_to_units(raw, expected):
    """Hex is wei, decimal is units; malformed or negative values are zero."""
    assert value_to_units(raw) == pytest.approx(expected)


def test_call_data_helpers():
    """"0x" and malformed data count as absent; selector is the first 4 bytes."""
    assert not has_call_data("0x")
    assert not has_call_data("0xabc")
    assert not has_call_data("not-hex")
    assert has_call_data("0xa9059cbb")
    assert function_selector("0xA9059CBB0000") == "0xa9059cbb"
    assert function_selector("0x1234") is None
    assert function_selector(APPROVE_UNLIMITED) == SELECTOR_APPROVE
    assert call_argument_word(APPROVE_UNLIMITED, 1) == MAX_UINT256
    assert call_argument_word(APPROVE_UNLIMITED, 2) is None
    assert contains_selector("0x12345678" + "23b872dd", "0x23b872dd")
    assert not contains_selector("0x", "0x23b872dd")


def test_huge_values_saturate_instead_of_zeroing():
    assert value_to_units("1e309") == sys.float_info.max
    assert value_to_units("0x" + "f" * 300) == sys.float_info.max
    assert value_to_units("Infinity") == 0.0


def test_parse_amount():
    assert parse_amount("1500") == 1500.0
    assert parse_amount("unlimited") is None
    assert parse_amount(None) is None
    assert parse_amount("inf") is None


def test_simple_transfer_is_low():
    """Plain small ETH transfer to an ordinary address triggers nothing."""
    risk = analyze_transaction(_tx())
    assert risk.risk_score == 0
    assert risk.risk_level == TransactionRiskLevel.LOW
    assert risk.warnings == []
    assert risk.recommendations == []
    assert risk.should_proceed is True
    assert risk.explanation == EXPLANATIONS[TransactionRiskLevel.LOW]


def test_zero_address_recipient():
    """Burn-address recipient scores 50 (HIGH) with a warning."""
    risk = analyze_transaction(_tx(to=ZERO_ADDRESS, value="1"))
    assert risk.risk_score == 50
    assert risk.risk_level == TransactionRiskLevel.HIGH
    assert risk.warnings == ["⚠️ Sending to known burn/scam address"]


def test_token_approval_and_large_value():
    """approve() call data plus value over one unit accumulates 10 + 15 + 20."""
    risk = analyze_transaction(_tx(value="0x1bc16d674ec80000", data=APPROVE_UNLIMITED))
    assert risk.risk_score == 45
    assert risk.risk_level == TransactionRiskLevel.MEDIUM
    assert "📜 Interacting with smart contract" in risk.warnings
    assert "🔐 Token approval or transfer detected" in risk.warnings
    assert "💰 Large transaction: 2.0000 ETH" in risk.warnings
    assert risk.recommendations == [
        "Verify the contract address and amount carefully",
        "Double-check the recipient address",
    ]


def test_every_rule_is_critical_and_not_proceed():
    risk = analyze_transaction(_tx(to=ZERO_ADDRESS, value="5", data=APPROVE_UNLIMITED))
    assert risk.risk_score == 95
    assert risk.risk_level == TransactionRiskLevel.CRITICAL
    assert risk.should_proceed is False


def test_malformed_value_and_data_count_as_absent():
    risk = analyze_transaction(_tx(value="lots", data="0xnothex"))
    assert risk.risk_score == 0
    assert risk.warnings == []


@pytest.mark.parametrize(
    "score,level",
    [(0, "LOW"), (24, "LOW"), (25, "MEDIUM"), (50, "HIGH"), (69, "HIGH"), (70, "CRITICAL")],
)
def test_classify_transaction_score_thresholds(score, level):
    assert classify_transaction_score(score).value == level


def test_to_dict_uses_wire_keys():
    out = analyze_transaction(_tx()).to_dict()
    assert set(out) == {"riskLevel", "riskScore", "warnings", "recommendations", "explanation", "shouldProceed"}


def test_explain_transaction_simple_transfer():
    text = explain_transaction(_tx(value="0.5"))
    assert "**From:** 0x1111...1111" in text
    assert f"**To:** {RECIPIENT[:6]}...{RECIPIENT[-4:]}" in text
    assert "**Amount:** 0.500000 ETH" in text
    assert "**Action:** Simple ETH transfer" in text


def test_explain_transaction_names_contract_action():
    text = explain_transaction(_tx(value="0x0", data=APPROVE_UNLIMITED))
    assert "**Amount:**" not in text
    assert "**Action:** Approve token spending" in text
    unknown = explain_transaction(_tx(data="0xdeadbeef"))
    assert "**Action:** Unknown contract interaction" in unknown
