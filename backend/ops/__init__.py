"""Operational logging: structured lifecycle and personalization events."""

from .ops_events import (
    log_bootstrap_failed,
    log_decision_fetch_failed,
    log_phase_end,
    log_phase_start,
    log_propositions_applied,
)

__all__ = [
    "log_bootstrap_failed",
    "log_decision_fetch_failed",
    "log_phase_end",
    "log_phase_start",
    "log_propositions_applied",
]
