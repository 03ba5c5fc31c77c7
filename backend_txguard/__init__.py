"""
Backend TxGuard: pre-execution threat prevention for wallet transactions.

Simulates a proposed transaction, cross-references threat intelligence,
scores static red flags and behavioral anomalies, and renders an
allow/block decision. Modular architecture with clear separation between
analysis engine, behavioral memory, threat intel, simulation and the
prevention orchestrator.
"""

__version__ = "0.1.0"
