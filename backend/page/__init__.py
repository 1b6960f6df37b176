"""Page document model: HTML tree, mutation stream, session storage."""

from .document import Page, class_list, parse_fragment
from .mutations import MutationBus, MutationRecord
from .session_storage import (
    DisabledSessionStorage,
    JsonFileSessionStorage,
    MemorySessionStorage,
    SessionStorage,
    StorageUnavailableError,
)

__all__ = [
    "Page",
    "class_list",
    "parse_fragment",
    "MutationBus",
    "MutationRecord",
    "DisabledSessionStorage",
    "JsonFileSessionStorage",
    "MemorySessionStorage",
    "SessionStorage",
    "StorageUnavailableError",
]
