"""Diagnostics events emitted by the persistence engine."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("progress_engine.telemetry")


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


class TelemetryHub:
    """Fans diagnostics events out to in-process listeners and the log."""

    def __init__(self) -> None:
        self._listeners: List[Callable[[TelemetryEvent], None]] = []
        self._lock = RLock()

    def register_listener(self, listener: Callable[[TelemetryEvent], None]) -> None:
        """Register an in-process listener (used in tests)."""
        with self._lock:
            self._listeners.append(listener)

    def clear_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()

    def emit(self, name: str, **fields: Any) -> None:
        """Emit a structured event and fan it out to listeners."""
        payload = _sanitize(fields)
        event = TelemetryEvent(name=name, payload=payload)

        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                logger.exception("Telemetry listener failed for %s", name)

        structured = {"event": name, **payload}
        logger.info("TELEMETRY %s", json.dumps(structured, default=_json_default))


def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            sanitized[key] = value.isoformat()
        else:
            sanitized[key] = value
    return sanitized


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


__all__ = [
    "TelemetryEvent",
    "TelemetryHub",
]
