"""
Simulation collaborator contract and HTTP adapter.
"""

from backend_txguard.simulation.client import (
    HttpTransactionSimulator,
    TransactionSimulator,
    parse_simulation_payload,
)

__all__ = ["HttpTransactionSimulator", "TransactionSimulator", "parse_simulation_payload"]
