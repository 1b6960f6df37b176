"""Personalization failure taxonomy. None of these abort page rendering."""


class PersonalizationError(Exception):
    """Base class for personalization failures."""


class BootstrapError(PersonalizationError):
    """Decisioning client failed to load or configure; personalization is off for the session."""


class DecisionFetchError(PersonalizationError):
    """Decision request failed (network, HTTP status, malformed response)."""


class DecisioningCommandError(PersonalizationError):
    """Unknown command or invalid payload passed to the decisioning client."""


class CommandBufferDrainedError(PersonalizationError):
    """The command buffer was already drained; it only transitions once."""
