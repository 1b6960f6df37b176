"""Personalization: decisioning client bootstrap, decision fetch & apply, selector resolution."""

from .bootstrap import bootstrap
from .command_buffer import ClientShim, CommandBuffer, PendingCommand, get_client_shim, reset_client_shim
from .decisions import AppliedPropositionsLog, DecisionApplier, get_applied_log, reset_applied_log
from .errors import (
    BootstrapError,
    CommandBufferDrainedError,
    DecisionFetchError,
    DecisioningCommandError,
    PersonalizationError,
)
from .schema import DOM_ACTION_SCHEMA, Proposition, PropositionItem
from .selectors import resolve_element, to_css_selector

__all__ = [
    "bootstrap",
    "ClientShim",
    "CommandBuffer",
    "PendingCommand",
    "get_client_shim",
    "reset_client_shim",
    "AppliedPropositionsLog",
    "DecisionApplier",
    "get_applied_log",
    "reset_applied_log",
    "BootstrapError",
    "CommandBufferDrainedError",
    "DecisionFetchError",
    "DecisioningCommandError",
    "PersonalizationError",
    "DOM_ACTION_SCHEMA",
    "Proposition",
    "PropositionItem",
    "resolve_element",
    "to_css_selector",
]
