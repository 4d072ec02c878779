"""
Key-Value Stores for quota counters and drafts.

The engine treats persistence as an opaque key-value store. JsonFileStore
keeps one JSON document on disk (the same layout as a preferences file);
InMemoryStore backs tests and ephemeral sessions.
"""

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from sumup.logging_config import debug_log, warning


class KeyValueStore(ABC):
    """Async key-value persistence interface."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for key, or default."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key if present."""


class InMemoryStore(KeyValueStore):
    """Dictionary-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._data.get(key, default))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, Any]:
        """Copy of everything stored (test helper)."""
        return copy.deepcopy(self._data)


class JsonFileStore(KeyValueStore):
    """
    Store persisted as a single JSON file.

    The file is read once on construction; a missing or corrupted file is
    treated as empty. Every set/delete rewrites the file in a worker thread
    so callers on the event loop never block on disk I/O. Write errors
    propagate to the caller (OSError), who decides whether they are fatal.
    """

    def __init__(self, store_file: Path):
        """
        Args:
            store_file: Path to the JSON document.
        """
        self.store_file = Path(store_file)
        self._data = self._load()
        self._write_lock = asyncio.Lock()

    def _load(self) -> dict[str, Any]:
        try:
            if self.store_file.exists():
                with open(self.store_file, encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                warning(f"[STORE] {self.store_file} does not hold a JSON object; starting empty")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            warning(f"[STORE] Corrupted store {self.store_file}: {e}; starting empty")
        except OSError as e:
            warning(f"[STORE] Could not read {self.store_file}: {e}; starting empty")
        return {}

    def _write(self, data: dict[str, Any]) -> None:
        self.store_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self.store_file.with_suffix(self.store_file.suffix + ".tmp")
        with open(tmp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        tmp_file.replace(self.store_file)

    async def _persist(self) -> None:
        async with self._write_lock:
            snapshot = copy.deepcopy(self._data)
            await asyncio.to_thread(self._write, snapshot)
        debug_log(f"[STORE] Wrote {len(snapshot)} keys to {self.store_file.name}")

    async def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._data.get(key, default))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        await self._persist()

    async def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            await self._persist()
