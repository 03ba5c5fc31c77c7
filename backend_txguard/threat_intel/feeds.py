"""
Threat intelligence sources: the bundled/local denylist and external feeds.

Local entries load from a JSON array (known_threats.json, overridable via
THREAT_DENYLIST_PATH). Entries are either plain address strings or objects
with address, severity, description and optional category.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from backend_txguard.core.exceptions import ThreatFeedError
from backend_txguard.core.models import Severity
from backend_txguard.txguard_logging import get_logger, short_id

logger = get_logger(__name__)

DEFAULT_ENTRY_SEVERITY = Severity.HIGH


def parse_severity(raw: Any, default: Severity = Severity.MEDIUM) -> Severity:
    """Map feed severities (any case, e.g. "CRITICAL") onto Severity; unknown -> default."""
    try:
        return Severity(str(raw).strip().lower())
    except ValueError:
        return default


@dataclass(frozen=True)
class ThreatRecord:
    """One known-bad finding for an address."""

    severity: Severity
    description: str
    source: str = "local_denylist"
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "severity": self.severity.value.upper(),
            "description": self.description,
            "source": self.source,
        }
        if self.category:
            out["category"] = self.category
        return out


@dataclass(frozen=True)
class DenylistEntry:
    address: str
    severity: Severity
    description: str
    category: str | None = None

    def to_record(self, source: str = "local_denylist") -> ThreatRecord:
        return ThreatRecord(
            severity=self.severity,
            description=self.description,
            source=source,
            category=self.category,
        )


def _entry_from_json(item: Any) -> DenylistEntry | None:
    if isinstance(item, str) and item.strip():
        address = item.strip().lower()
        return DenylistEntry(address, DEFAULT_ENTRY_SEVERITY, f"Address {short_id(address)} is on the local denylist")
    if not isinstance(item, dict):
        return None
    address = str(item.get("address") or "").strip().lower()
    if not address:
        return None
    return DenylistEntry(
        address=address,
        severity=parse_severity(item.get("severity"), DEFAULT_ENTRY_SEVERITY),
        description=str(item.get("description") or f"Address {short_id(address)} is on the local denylist"),
        category=item.get("category"),
    )


def load_denylist(path: Path) -> dict[str, DenylistEntry]:
    """Load denylist JSON keyed by lowercased address. Missing or unreadable file -> empty."""
    if not path.is_file():
        logger.debug("threat_denylist_missing", path=str(path))
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("threat_denylist_load_failed", path=str(path), error=str(e))
        return {}
    if not isinstance(data, list):
        logger.warning("threat_denylist_not_a_list", path=str(path))
        return {}
    entries: dict[str, DenylistEntry] = {}
    for item in data:
        entry = _entry_from_json(item)
        if entry is not None:
            entries[entry.address] = entry
    return entries


class ThreatFeed(Protocol):
    """External threat-intel provider. Raises ThreatFeedError when it cannot answer."""

    name: str

    async def lookup(
        self,
        address: str,
        transactions: Sequence[Any],
        approvals: Sequence[Any],
    ) -> list[ThreatRecord]: ...


class _FeedThreat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    severity: str
    description: str
    category: str | None = None


class _FeedResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    threats: list[_FeedThreat] = []


class HttpThreatFeed:
    """
    Threat feed over HTTP: GET {base_url}/{address} -> {"threats": [...]}.

    404 means the address is unknown to the feed (clean). Any other HTTP
    error, transport error or malformed body raises ThreatFeedError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        name: str | None = None,
        timeout_sec: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("base_url must be non-empty")
        self._base_url = base_url.rstrip("/")
        self.name = name or httpx.URL(self._base_url).host or self._base_url
        self._timeout = timeout_sec
        self._client = client

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url)

    async def lookup(
        self,
        address: str,
        transactions: Sequence[Any],
        approvals: Sequence[Any],
    ) -> list[ThreatRecord]:
        url = f"{self._base_url}/{address.lower()}"
        try:
            resp = await self._get(url)
            if resp.status_code == 404:
                return []
            resp.raise_for_status()
            body = _FeedResponse.model_validate(resp.json())
        except httpx.HTTPError as e:
            raise ThreatFeedError(f"{self.name} request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise ThreatFeedError(f"{self.name} returned a malformed payload: {e}") from e
        return [
            ThreatRecord(
                severity=parse_severity(t.severity),
                description=t.description,
                source=self.name,
                category=t.category,
            )
            for t in body.threats
        ]
