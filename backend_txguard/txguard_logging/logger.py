"""
Structured logging for the threat prevention pipeline.

Every line is one JSON object (or a console line when LOG_FORMAT is not
"json") carrying event_type, level, ISO timestamp, the emitting module and
whatever layer context the caller binds: wallet_id, risk_score, layer.

Call data and signatures can be kilobytes of hex, so long 0x strings are
shortened before rendering; credential-like keys are never written.

Imports nothing from backend_txguard so any module can use it.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

LOG_LEVEL = (os.getenv("TXGUARD_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

# Longest hex string logged verbatim: a 32-byte word with 0x prefix
MAX_HEX_LOG_CHARS = 66
REDACTED_KEYS = frozenset({"api_key", "simulator_api_key", "authorization", "x-access-key"})


def _shorten_hex(value: str) -> str:
    nbytes = (len(value) - 2) // 2
    return f"{value[:10]}…({nbytes} bytes)"


def _compact_payloads(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Collapse long hex payloads (call data, traces) to selector + byte count."""
    for key, value in event_dict.items():
        if isinstance(value, str) and value.startswith("0x") and len(value) > MAX_HEX_LOG_CHARS:
            event_dict[key] = _shorten_hex(value)
    return event_dict


def _redact_secrets(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = "***"
    return event_dict


def _rename_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog's positional 'event' becomes event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog(json_output: bool | None = None, level: str | None = None) -> None:
    """(Re)configure structlog for the process. Defaults come from LOG_FORMAT / LOG_LEVEL."""
    as_json = LOG_FORMAT == "json" if json_output is None else json_output
    level_value = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.format_exc_info,
        _redact_secrets,
        _compact_payloads,
        _rename_event,
    ]
    if as_json:
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty(), event_key="event_type"))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger; name is bound as "logger".

        logger = get_logger(__name__)
        logger.info("threat_prevention_decision", wallet_id=short_id(addr), risk_score=55)
    """
    return structlog.get_logger(name).bind(logger=name)


def short_id(address: str | None) -> str:
    """0x1234...abcd form of an address for log lines; "?" when missing."""
    if not address:
        return "?"
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


def bind_evaluation(wallet_id: str, **context: Any) -> structlog.BoundLogger:
    """Logger for one evaluation: wallet_id (shortened) plus any per-call context."""
    return get_logger("backend_txguard.prevention").bind(wallet_id=short_id(wallet_id), **context)
