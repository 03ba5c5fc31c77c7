"""
Structured logging for Backend TxGuard.

JSON logs with timestamp, wallet_id, event_type and per-layer context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_txguard.txguard_logging.logger import bind_evaluation, get_logger, short_id

__all__ = ["bind_evaluation", "get_logger", "short_id"]
