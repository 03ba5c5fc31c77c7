"""
Threat intelligence: known-bad addresses from a local denylist and
external feeds, looked up per recipient before a transaction is allowed.
"""

from backend_txguard.threat_intel.checker import FeedAttempt, ThreatIntelligence, ThreatSummary
from backend_txguard.threat_intel.feeds import (
    DenylistEntry,
    HttpThreatFeed,
    ThreatFeed,
    ThreatRecord,
    load_denylist,
    parse_severity,
)

__all__ = [
    "DenylistEntry",
    "FeedAttempt",
    "HttpThreatFeed",
    "ThreatFeed",
    "ThreatIntelligence",
    "ThreatRecord",
    "ThreatSummary",
    "load_denylist",
    "parse_severity",
]
