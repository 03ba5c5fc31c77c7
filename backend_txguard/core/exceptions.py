"""
Application-level exceptions.

Collaborator failures (simulator, threat feeds) are fatal to a single
evaluation; the prevention engine turns them into a fail-closed result.
"""

from __future__ import annotations


class TxGuardError(Exception):
    """Base class for all TxGuard errors."""


class InvalidTransactionError(TxGuardError):
    """Transaction request is structurally invalid (missing fields, bad address shape)."""


class CollaboratorError(TxGuardError):
    """An external collaborator failed, timed out, or returned a malformed payload."""

    def __init__(self, collaborator: str, message: str) -> None:
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.message = message


class SimulationError(CollaboratorError):
    def __init__(self, message: str) -> None:
        super().__init__("simulator", message)


class ThreatFeedError(CollaboratorError):
    def __init__(self, message: str) -> None:
        super().__init__("threat_feed", message)
