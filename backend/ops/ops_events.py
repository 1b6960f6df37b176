"""
Structured ops events for page lifecycle milestones and personalization.
Log-level + structured event dict; deterministic (no random ids).
Timestamps only in log output; durations are measured with perf_counter.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict

OPS_LOGGER_NAME = "ops_events"


def _logger() -> logging.Logger:
    return logging.getLogger(OPS_LOGGER_NAME)


def _event(event_type: str, level: int = logging.INFO, **kwargs: Any) -> None:
    """Emit a structured ops event (deterministic keys; no random ids)."""
    msg = f"ops_event={event_type} " + " ".join(f"{k}={v!r}" for k, v in sorted(kwargs.items()))
    _logger().log(level, msg, extra={"ops_event_type": event_type, "ops_event": {**kwargs}})


def log_phase_start(phase: str) -> float:
    """Log lifecycle phase start; return start time for duration calculation."""
    _event("phase_start", phase=phase)
    return time.perf_counter()


def log_phase_end(phase: str, duration_seconds: float) -> None:
    """Log lifecycle phase end with duration."""
    _event("phase_end", phase=phase, duration_seconds=round(duration_seconds, 4))


def log_bootstrap_start(module_path: str) -> float:
    """Log decisioning client bootstrap start; return start time."""
    _event("bootstrap_start", module_path=module_path)
    return time.perf_counter()


def log_bootstrap_ok(module_path: str, duration_seconds: float) -> None:
    _event("bootstrap_ok", module_path=module_path, duration_seconds=round(duration_seconds, 4))


def log_bootstrap_failed(module_path: str, error: str) -> None:
    """Personalization is unavailable for the rest of the session."""
    _event("bootstrap_failed", level=logging.ERROR, module_path=module_path, error=error)


def log_decisions_fetched(proposition_count: int, item_count: int) -> None:
    _event("decisions_fetched", proposition_count=proposition_count, item_count=item_count)


def log_decision_fetch_failed(error: str) -> None:
    _event("decision_fetch_failed", level=logging.ERROR, error=error)


def log_propositions_applied(
    proposition_count: int,
    matched_items: int,
    dropped_items: int,
) -> None:
    """Log application outcome: items confirmed on the page vs. items whose target was missing."""
    _event(
        "propositions_applied",
        proposition_count=proposition_count,
        matched_items=matched_items,
        dropped_items=dropped_items,
    )


def log_proposition_apply_failed(error: str) -> None:
    _event("proposition_apply_failed", level=logging.ERROR, error=error)


def log_display_report_failed(error: str) -> None:
    _event("display_report_failed", level=logging.WARNING, error=error)


def log_auto_block_failed(block_name: str, error: str) -> None:
    _event("auto_block_failed", level=logging.ERROR, block_name=block_name, error=error)


def log_storage_failure(key: str, operation: str, error: str) -> None:
    """Persisted flag read/write failed; the flag is treated as absent."""
    _event("storage_failure", level=logging.DEBUG, key=key, operation=operation, error=error)


def log_background_task_failed(task_name: str, error: str) -> None:
    _event("background_task_failed", level=logging.ERROR, task_name=task_name, error=error)


def log_region_load_failed(region: str, block_name: str, error: str) -> None:
    _event("region_load_failed", level=logging.ERROR, region=region, block_name=block_name, error=error)


def log_summary(flags: Dict[str, Any]) -> None:
    """Log the end-of-run lifecycle summary (bounded flags dict)."""
    _event("lifecycle_summary", **flags)
