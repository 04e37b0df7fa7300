"""
Key-Value Storage - Async string store used to persist policy snapshots.

Implementations:
- InMemoryKeyValueStore: process-local, used by default and in tests
- JsonFileKeyValueStore: one JSON document on disk holding every item
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol


logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Async string key-value store."""

    async def get_item(self, name: str) -> Optional[str]:
        ...

    async def set_item(self, name: str, value: str) -> None:
        ...

    async def remove_item(self, name: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Dictionary-backed store."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    async def get_item(self, name: str) -> Optional[str]:
        return self._items.get(name)

    async def set_item(self, name: str, value: str) -> None:
        self._items[name] = value

    async def remove_item(self, name: str) -> None:
        self._items.pop(name, None)


class JsonFileKeyValueStore:
    """
    File-backed store.

    All items live in a single JSON object; every write rewrites the file.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        with open(self._path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object storage file: {self._path}")
            return {}
        return data

    def _write_all(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w") as f:
            json.dump(items, f, indent=2)

    async def get_item(self, name: str) -> Optional[str]:
        return self._read_all().get(name)

    async def set_item(self, name: str, value: str) -> None:
        items = self._read_all()
        items[name] = value
        self._write_all(items)

    async def remove_item(self, name: str) -> None:
        items = self._read_all()
        if name in items:
            del items[name]
            self._write_all(items)
