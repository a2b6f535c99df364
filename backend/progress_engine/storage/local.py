"""Browser-style key/value stores holding the uncompressed progress document."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class LocalStorage(Protocol):
    """Minimal ``localStorage`` surface the engine relies on."""

    def get_item(self, key: str) -> Optional[str]:  # pragma: no cover - protocol definition
        ...

    def set_item(self, key: str, value: str) -> None:  # pragma: no cover - protocol definition
        ...

    def remove_item(self, key: str) -> None:  # pragma: no cover - protocol definition
        ...


class MemoryLocalStorage:
    """Process-local store, used for tests and for hosts without disk access."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileLocalStorage:
    """JSON-file persistence mapping storage keys to their text values."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError):
            logger.exception("Failed to read local storage file %s", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring local storage file %s with unexpected layout", self._path)
            return {}
        return {key: value for key, value in raw.items() if isinstance(value, str)}

    def _write_unlocked(self, items: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(items, handle, indent=2)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load_unlocked().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._load_unlocked()
            items[key] = value
            self._write_unlocked(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._load_unlocked()
            if items.pop(key, None) is not None:
                self._write_unlocked(items)


__all__ = ["JsonFileLocalStorage", "LocalStorage", "MemoryLocalStorage"]
