"""JSON (de)serialization of the persisted progress document."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from .constants import STATE_VERSION
from .models import SerializedState


class StateDocumentError(ValueError):
    """Raised when a stored document is empty, malformed, or obsolete."""


def serialize(state: SerializedState) -> str:
    return state.to_json()


def parse_document(raw: str | None) -> SerializedState:
    """Validate a stored JSON document; there is no partial acceptance."""
    if not raw:
        raise StateDocumentError("Stored document is empty.")
    try:
        payload: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StateDocumentError(f"Stored document is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise StateDocumentError("Stored document must be a JSON object.")

    version = payload.get("_stateVersion")
    if not isinstance(version, int) or isinstance(version, bool) or version < STATE_VERSION:
        raise StateDocumentError(
            f"Stored document version {version!r} is older than {STATE_VERSION}."
        )

    try:
        return SerializedState.model_validate(payload)
    except ValidationError as exc:
        raise StateDocumentError(f"Stored document failed validation: {exc}") from exc


__all__ = ["StateDocumentError", "parse_document", "serialize"]
