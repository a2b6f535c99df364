"""Local storage backends and the settings-driven factory."""

from __future__ import annotations

from pathlib import Path

from ..config import Settings
from ..db.session import build_engine
from .database import DatabaseLocalStorage
from .local import JsonFileLocalStorage, LocalStorage, MemoryLocalStorage

DATA_DIR = Path.home() / ".progress_engine"


def build_local_storage(settings: Settings) -> LocalStorage:
    mode = settings.local_storage_mode
    if mode == "memory":
        return MemoryLocalStorage()
    if mode == "database":
        return DatabaseLocalStorage(build_engine(settings))
    path = Path(settings.local_storage_path) if settings.local_storage_path else DATA_DIR / "local_storage.json"
    return JsonFileLocalStorage(path)


__all__ = [
    "DatabaseLocalStorage",
    "JsonFileLocalStorage",
    "LocalStorage",
    "MemoryLocalStorage",
    "build_local_storage",
]
