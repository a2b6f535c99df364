"""Reads both backends and reconciles them into one authoritative snapshot."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .codec import decode
from .constants import SOURCE_BOTH, SOURCE_LMS, SOURCE_LOCAL, SOURCE_NONE, SUSPEND_DATA_KEY
from .merge import MULTI_TAB_WINDOW_MS, merge_states
from .models import LoadResult, SerializedState
from .scorm.adapter import ScormAdapter
from .serialization import StateDocumentError, parse_document
from .storage.local import LocalStorage
from .telemetry import TelemetryHub

logger = logging.getLogger(__name__)


class DualBackendLoader:
    """Loads the LMS and local copies; an unreadable copy is cleared and ignored."""

    def __init__(
        self,
        adapter: ScormAdapter,
        local_storage: LocalStorage,
        *,
        storage_key: str,
        clock: Callable[[], int],
        telemetry: TelemetryHub,
        multi_tab_window_ms: int = MULTI_TAB_WINDOW_MS,
    ) -> None:
        self._adapter = adapter
        self._local = local_storage
        self._storage_key = storage_key
        self._clock = clock
        self._telemetry = telemetry
        self._multi_tab_window_ms = multi_tab_window_ms

    def load(self) -> LoadResult:
        lms_state = self.load_from_lms()
        local_state = self.load_from_local()

        if lms_state is None and local_state is None:
            result = LoadResult(state=None, source=SOURCE_NONE)
        elif lms_state is None:
            result = LoadResult(state=local_state, source=SOURCE_LOCAL)
        elif local_state is None:
            result = LoadResult(state=lms_state, source=SOURCE_LMS)
        else:
            outcome = merge_states(
                local_state,
                lms_state,
                now_ms=self._clock(),
                multi_tab_window_ms=self._multi_tab_window_ms,
            )
            if outcome.multi_tab_warning:
                logger.warning(
                    "LMS and local copies were written %d ms apart; another tab may be active",
                    abs(lms_state.timestamp - local_state.timestamp),
                )
                self._telemetry.emit(
                    "multi_tab_conflict",
                    lms_timestamp=lms_state.timestamp,
                    local_timestamp=local_state.timestamp,
                )
            result = LoadResult(
                state=outcome.state,
                source=SOURCE_BOTH,
                multi_tab_warning=outcome.multi_tab_warning,
            )

        self._telemetry.emit(
            "state_loaded",
            source=result.source,
            multi_tab_warning=result.multi_tab_warning,
        )
        return result

    def load_from_lms(self) -> Optional[SerializedState]:
        if not self._adapter.is_available():
            return None
        blob = self._adapter.get_value(SUSPEND_DATA_KEY)
        if not blob:
            return None
        text = decode(blob)
        if text is None:
            self._discard_lms("suspend data could not be decompressed")
            return None
        try:
            return parse_document(text)
        except StateDocumentError as exc:
            self._discard_lms(str(exc))
            return None

    def load_from_local(self) -> Optional[SerializedState]:
        try:
            raw = self._local.get_item(self._storage_key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read local storage key %s", self._storage_key)
            return None
        if not raw:
            return None
        try:
            return parse_document(raw)
        except StateDocumentError as exc:
            self._discard_local(str(exc))
            return None

    def _discard_lms(self, reason: str) -> None:
        logger.warning("Discarding LMS suspend data: %s", reason)
        self._telemetry.emit("state_discarded", source=SOURCE_LMS, reason=reason)
        if self._adapter.set_value(SUSPEND_DATA_KEY, ""):
            self._adapter.commit()

    def _discard_local(self, reason: str) -> None:
        logger.warning("Discarding local storage document: %s", reason)
        self._telemetry.emit("state_discarded", source=SOURCE_LOCAL, reason=reason)
        try:
            self._local.remove_item(self._storage_key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to clear local storage key %s", self._storage_key)


__all__ = ["DualBackendLoader"]
