"""
Persisted per-session key/value flags (e.g. "fonts already warmed this session").
Stores raise StorageUnavailableError on any read/write failure; callers treat the
flag as absent.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional, Protocol


class StorageUnavailableError(Exception):
    """Raised when session storage cannot be read or written."""


class SessionStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class MemorySessionStorage:
    """In-process storage; lives as long as the object."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)


class JsonFileSessionStorage:
    """
    Storage persisted to a JSON object file so flags survive between navigations.
    A missing file reads as empty.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageUnavailableError(f"cannot read {self._path}: {e!s}") from e
        if not isinstance(data, dict):
            raise StorageUnavailableError(f"{self._path} does not hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = str(value)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, sort_keys=True), encoding="utf-8")
        except OSError as e:
            raise StorageUnavailableError(f"cannot write {self._path}: {e!s}") from e


class DisabledSessionStorage:
    """Storage that is never available (private browsing, sandboxed contexts)."""

    def get_item(self, key: str) -> Optional[str]:
        raise StorageUnavailableError("session storage is disabled")

    def set_item(self, key: str, value: str) -> None:
        raise StorageUnavailableError("session storage is disabled")
