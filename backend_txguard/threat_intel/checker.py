"""
Threat intelligence check: local denylist first, then external feeds.

External feeds are an ordered list of provider attempts; the first feed
that answers wins. Each attempt is recorded with a uniform outcome so a
failure in one feed is visible without nested exception handling. If
feeds are configured and none answers, the check raises ThreatFeedError
and the evaluation fails closed.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from backend_txguard.core.exceptions import ThreatFeedError
from backend_txguard.core.models import Severity
from backend_txguard.threat_intel.feeds import (
    DenylistEntry,
    ThreatFeed,
    ThreatRecord,
    load_denylist,
)
from backend_txguard.txguard_logging import get_logger, short_id

logger = get_logger(__name__)


@dataclass
class FeedAttempt:
    """Outcome of asking one feed: ok with records, or failed with an error string."""

    feed: str
    ok: bool
    records: list[ThreatRecord] = field(default_factory=list)
    error: str | None = None


@dataclass
class ThreatSummary:
    """Snapshot of what the checker knows: denylist size by severity and configured feeds."""

    denylist_size: int
    by_severity: dict[str, int]
    feeds: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "denylistSize": self.denylist_size,
            "bySeverity": dict(self.by_severity),
            "feeds": list(self.feeds),
        }


def _counterparty(tx: Any, own: str) -> str | None:
    """The other side of a provider transaction record, lowercased."""
    if not isinstance(tx, Mapping):
        return None
    sender = str(tx.get("from") or tx.get("from_address") or "").lower()
    receiver = str(tx.get("to") or tx.get("to_address") or "").lower()
    if sender == own:
        return receiver or None
    if receiver == own:
        return sender or None
    return receiver or None


def _spender(approval: Any) -> str | None:
    if not isinstance(approval, Mapping):
        return None
    spender = approval.get("spender") or approval.get("spender_address")
    return str(spender).lower() if spender else None


class ThreatIntelligence:
    """Looks addresses and their recent activity up against known-bad actors."""

    def __init__(
        self,
        *,
        denylist: Mapping[str, DenylistEntry] | None = None,
        denylist_path: Path | None = None,
        feeds: Sequence[ThreatFeed] = (),
    ) -> None:
        if denylist is not None:
            self._denylist = {k.lower(): v for k, v in denylist.items()}
        elif denylist_path is not None:
            self._denylist = load_denylist(denylist_path)
        else:
            self._denylist = {}
        self._feeds = list(feeds)

    @property
    def denylist(self) -> Mapping[str, DenylistEntry]:
        return self._denylist

    def _local_records(
        self,
        address: str,
        transactions: Sequence[Any],
        approvals: Sequence[Any],
    ) -> list[ThreatRecord]:
        records: list[ThreatRecord] = []
        entry = self._denylist.get(address)
        if entry is not None:
            records.append(entry.to_record())

        flagged_counterparties: set[str] = set()
        for tx in transactions:
            other = _counterparty(tx, address)
            if other and other != address and other in self._denylist and other not in flagged_counterparties:
                flagged_counterparties.add(other)
                records.append(
                    ThreatRecord(
                        severity=Severity.MEDIUM,
                        description=f"Previously transacted with known malicious address {short_id(other)}",
                        category="malicious_counterparty",
                    )
                )
        for approval in approvals:
            spender = _spender(approval)
            if spender and spender in self._denylist:
                records.append(
                    ThreatRecord(
                        severity=Severity.HIGH,
                        description=f"Active token approval to known malicious spender {short_id(spender)}",
                        category="malicious_approval",
                    )
                )
        return records

    async def _query_feeds(
        self,
        address: str,
        transactions: Sequence[Any],
        approvals: Sequence[Any],
    ) -> list[FeedAttempt]:
        attempts: list[FeedAttempt] = []
        for feed in self._feeds:
            try:
                records = await feed.lookup(address, transactions, approvals)
            except ThreatFeedError as e:
                attempts.append(FeedAttempt(feed=feed.name, ok=False, error=str(e)))
                logger.warning("threat_feed_failed", feed=feed.name, error=str(e))
                continue
            attempts.append(FeedAttempt(feed=feed.name, ok=True, records=records))
            break
        return attempts

    async def check_wallet_threats(
        self,
        address: str,
        transactions: Sequence[Any] = (),
        approvals: Sequence[Any] = (),
    ) -> list[ThreatRecord]:
        """
        Return every threat record for address; empty list when clean.

        Raises ThreatFeedError only when external feeds are configured and
        none of them could answer.
        """
        key = address.lower()
        records = self._local_records(key, transactions, approvals)
        if self._feeds:
            attempts = await self._query_feeds(key, transactions, approvals)
            answered = [a for a in attempts if a.ok]
            if not answered:
                errors = "; ".join(a.error or a.feed for a in attempts)
                raise ThreatFeedError(f"no threat feed answered for {short_id(key)}: {errors}")
            records.extend(answered[0].records)
        if records:
            logger.info(
                "threat_intel_hits",
                address=short_id(key),
                hits=len(records),
                severities=[r.severity.value for r in records],
            )
        return records

    def get_threat_summary(self) -> ThreatSummary:
        counts = Counter(e.severity.value for e in self._denylist.values())
        return ThreatSummary(
            denylist_size=len(self._denylist),
            by_severity=dict(counts),
            feeds=[f.name for f in self._feeds],
        )
