"""
Call data and value normalization shared by the analysis layers.

Malformed optional fields never raise: an unparseable value is zero and
malformed call data is treated as absent.
"""

from __future__ import annotations

import math
import re
import sys
from decimal import Decimal, InvalidOperation

WEI_PER_UNIT = 10**18

SELECTOR_TRANSFER = "0xa9059cbb"
SELECTOR_APPROVE = "0x095ea7b3"
SELECTOR_TRANSFER_FROM = "0x23b872dd"

ERC20_MUTATING_SELECTORS = frozenset({
    SELECTOR_TRANSFER,
    SELECTOR_APPROVE,
    SELECTOR_TRANSFER_FROM,
})

SELECTOR_NAMES = {
    SELECTOR_TRANSFER: "Transfer tokens",
    SELECTOR_APPROVE: "Approve token spending",
    SELECTOR_TRANSFER_FROM: "Transfer tokens from another address",
}

MAX_UINT256 = 2**256 - 1

_HEX_DATA_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")


def normalize_call_data(data: str | None) -> str:
    """
    Return lowercase 0x-prefixed call data, or "" when absent/trivial/malformed.

    "0x" alone means no call data.
    """
    if not data:
        return ""
    data = data.strip()
    if not _HEX_DATA_RE.match(data) or len(data) <= 2:
        return ""
    return data.lower()


def has_call_data(data: str | None) -> bool:
    return bool(normalize_call_data(data))


def function_selector(data: str | None) -> str | None:
    """Leading 4-byte selector as 0x-prefixed lowercase hex; None if fewer than 4 bytes."""
    normalized = normalize_call_data(data)
    if len(normalized) < 10:
        return None
    return normalized[:10]


def contains_selector(data: str | None, selector: str) -> bool:
    """True if the 4-byte selector appears anywhere in the call data, not only as the leading one."""
    normalized = normalize_call_data(data)
    if not normalized:
        return False
    return selector.lower().removeprefix("0x") in normalized[2:]


def call_argument_word(data: str | None, index: int) -> int | None:
    """Decode the index-th 32-byte ABI argument word after the selector; None if absent."""
    normalized = normalize_call_data(data)
    start = 10 + index * 64
    word = normalized[start:start + 64]
    if len(word) != 64:
        return None
    return int(word, 16)


def _saturating_float(amount: Decimal) -> float:
    units = float(amount)
    return units if math.isfinite(units) else sys.float_info.max


def value_to_units(value: str | None) -> float:
    """
    Convert a transaction value from its wire encoding into unit-normalized amount.

    0x-prefixed values are hex wei (divided by 1e18); other strings are decimal
    unit amounts. Anything unparseable, negative, or non-finite is 0.0.
    Amounts too large for a float saturate at sys.float_info.max.
    """
    if value is None:
        return 0.0
    raw = str(value).strip()
    if not raw:
        return 0.0
    if raw[:2].lower() == "0x":
        digits = raw[2:]
        if not digits:
            return 0.0
        try:
            wei = int(digits, 16)
        except ValueError:
            return 0.0
        return _saturating_float(Decimal(wei) / Decimal(WEI_PER_UNIT))
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        return 0.0
    if not amount.is_finite() or amount < 0:
        return 0.0
    return _saturating_float(amount)


def parse_amount(value: str | None) -> float | None:
    """Parse a simulator amount string as a float; None when it is not numeric."""
    if value is None:
        return None
    try:
        amount = float(str(value).strip())
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None
