"""Persistence engine: local writes, LMS commit scheduling, load and merge.

Every save lands in local storage immediately. Critical saves are pushed to
the LMS at once through the reduction chain; other saves coalesce behind a
single debounce timer so only the latest snapshot is written when it fires.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from .config import Settings, get_settings
from .constants import (
    READ_ONLY_ERROR,
    REDUCTION_FULL,
    SOURCE_LMS,
    SOURCE_LOCAL,
    STATE_VERSION,
    SUSPEND_DATA_KEY,
)
from .loader import DualBackendLoader
from .models import CompletionStatus, LoadResult, SaveResult, SerializedState
from .reduction import (
    SuspendDataOverflowError,
    build_reduction_chain,
    encode_state,
    first_that_fits,
    reduce_full,
)
from .scorm.adapter import ScormAdapter
from .scorm.async_client import AsyncScormClient
from .serialization import serialize
from .storage import build_local_storage
from .storage.local import LocalStorage
from .tab_lock import LockHandle, TabLockManager
from .telemetry import TelemetryHub

logger = logging.getLogger(__name__)


class CommitPhase(str, Enum):
    IDLE = "idle"
    DEBOUNCE_PENDING = "debounce_pending"
    COMMITTING = "committing"


def _now_ms() -> int:
    return int(time.time() * 1000)


class StateEngine:
    def __init__(
        self,
        adapter: ScormAdapter,
        local_storage: LocalStorage,
        *,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], int]] = None,
        telemetry: Optional[TelemetryHub] = None,
        lock: Optional[TabLockManager] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._adapter = adapter
        self._client = AsyncScormClient(adapter)
        self._local = local_storage
        self._clock = clock or _now_ms
        self._telemetry = telemetry or TelemetryHub()
        self._chain = build_reduction_chain(self._settings.reduced_attempt_limit)
        self._loader = DualBackendLoader(
            adapter,
            local_storage,
            storage_key=self._settings.storage_key,
            clock=self._clock,
            telemetry=self._telemetry,
            multi_tab_window_ms=self._settings.multi_tab_window_ms,
        )
        self._initialized = False
        self._phase = CommitPhase.IDLE
        self._last_saved_state: Optional[SerializedState] = None
        self._commit_task: Optional[asyncio.Task[None]] = None

        self._lock = lock
        self._lock_handle: Optional[LockHandle] = None
        self._unsubscribe_lock: Optional[Callable[[], None]] = None
        if lock is not None:
            self._lock_handle = lock.handle
            self._unsubscribe_lock = lock.on_lock_change(self._on_lock_change)

    @property
    def phase(self) -> CommitPhase:
        return self._phase

    @property
    def telemetry(self) -> TelemetryHub:
        return self._telemetry

    @property
    def lms_available(self) -> bool:
        return self._client.is_available()

    @property
    def read_only(self) -> bool:
        if self._lock is None:
            return False
        return self._lock_handle is None or not self._lock_handle.valid

    def has_pending_save(self) -> bool:
        return self._last_saved_state is not None

    async def initialize(self) -> bool:
        if self._initialized:
            return True
        connected = await self._client.initialize()
        self._initialized = True
        logger.info(
            "State engine initialized (lms=%s, version=%s)",
            connected,
            self._client.version,
        )
        return True

    async def load_state(self) -> LoadResult:
        try:
            return self._loader.load()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to load persisted state")
            return LoadResult()

    async def save_state(self, state: SerializedState, *, critical: bool = False) -> SaveResult:
        if self.read_only:
            logger.warning("Ignoring save from read-only tab")
            return SaveResult(success=False, source=SOURCE_LOCAL, error=READ_ONLY_ERROR)

        stamped = state.model_copy(
            update={
                "state_version": STATE_VERSION,
                "timestamp": self._clock(),
                "reduction_level": None,
            },
            deep=True,
        )
        self._write_local(stamped)

        if not self._client.is_available():
            return SaveResult(success=True, level=REDUCTION_FULL, size=0, source=SOURCE_LOCAL)

        if critical:
            self._cancel_timer()
            self._last_saved_state = None
            return await self._commit(stamped)

        self._schedule_commit(stamped)
        return SaveResult(success=True, level=REDUCTION_FULL, size=0, source=SOURCE_LOCAL)

    def force_commit(self) -> bool:
        """Synchronous single-attempt full write for unload handlers.

        Returns ``False`` only when a pending snapshot could not be written.
        """
        self._cancel_timer()
        state = self._last_saved_state
        if state is None:
            self._phase = CommitPhase.IDLE
            return True
        if not self._adapter.is_available():
            return False

        encoded = encode_state(reduce_full(state))
        limit = self._adapter.get_size_limit()
        if len(encoded) > limit:
            logger.warning("Forced commit exceeds suspend data limit (%d > %d)", len(encoded), limit)
        written = self._adapter.set_value(SUSPEND_DATA_KEY, encoded)
        if written:
            self._adapter.commit()
            self._last_saved_state = None
        self._phase = CommitPhase.IDLE
        return written

    def terminate(self) -> bool:
        self.force_commit()
        terminated = self._adapter.terminate()
        if self._unsubscribe_lock is not None:
            self._unsubscribe_lock()
            self._unsubscribe_lock = None
        return terminated

    def set_completion_status(self, status: CompletionStatus) -> bool:
        return self._adapter.set_completion_status(status)

    def set_score(self, value: float, maximum: float = 100) -> bool:
        return self._adapter.set_score(value, 0, maximum)

    def _write_local(self, state: SerializedState) -> None:
        try:
            self._local.set_item(self._settings.storage_key, serialize(state))
        except Exception:  # noqa: BLE001
            logger.exception("Failed to write local storage key %s", self._settings.storage_key)

    def _schedule_commit(self, state: SerializedState) -> None:
        self._last_saved_state = state
        self._cancel_timer()
        self._commit_task = asyncio.get_running_loop().create_task(self._debounced_commit())
        self._phase = CommitPhase.DEBOUNCE_PENDING

    def _cancel_timer(self) -> None:
        if self._commit_task is not None:
            self._commit_task.cancel()
            self._commit_task = None
        if self._phase == CommitPhase.DEBOUNCE_PENDING:
            self._phase = CommitPhase.IDLE

    async def _debounced_commit(self) -> None:
        await asyncio.sleep(self._settings.debounce_seconds)
        self._commit_task = None
        state = self._last_saved_state
        if state is None:
            self._phase = CommitPhase.IDLE
            return
        result = await self._commit(state)
        if result.success and self._last_saved_state is state:
            self._last_saved_state = None

    async def _commit(self, state: SerializedState) -> SaveResult:
        self._phase = CommitPhase.COMMITTING
        try:
            return await self._commit_through_chain(state)
        finally:
            self._phase = CommitPhase.DEBOUNCE_PENDING if self._commit_task is not None else CommitPhase.IDLE

    async def _commit_through_chain(self, state: SerializedState) -> SaveResult:
        limit = await self._client.get_size_limit()
        try:
            fit = first_that_fits(state, limit, self._chain)
        except SuspendDataOverflowError as exc:
            logger.error("%s", exc)
            self._emit("suspend_data_overflow", size=exc.size, limit=exc.limit)
            return SaveResult(
                success=False,
                level=exc.level,
                size=exc.size,
                source=SOURCE_LMS,
                error=str(exc),
            )

        written = await self._client.set_value(SUSPEND_DATA_KEY, fit.encoded)
        if written:
            await self._client.commit()
            self._emit("state_saved", source=SOURCE_LMS, level=fit.level, size=fit.size)
        else:
            self._emit("state_save_failed", source=SOURCE_LMS, level=fit.level, size=fit.size)
        return SaveResult(
            success=written,
            level=fit.level,
            size=fit.size,
            source=SOURCE_LMS,
            error=None if written else "LMS write failed",
        )

    def _on_lock_change(self, handle: Optional[LockHandle]) -> None:
        # the previous handle is already revoked by the time listeners run
        had_lock = self._lock_handle is not None
        self._lock_handle = handle
        if had_lock and handle is None:
            logger.info("Write lock lost; flushing pending snapshot")
            self.force_commit()

    def _emit(self, name: str, **fields: Any) -> None:
        self._telemetry.emit(name, **fields)


def build_state_engine(
    root: Any = None,
    *,
    settings: Optional[Settings] = None,
    lock: Optional[TabLockManager] = None,
    telemetry: Optional[TelemetryHub] = None,
) -> StateEngine:
    """Wire an engine from configuration; ``root`` is the frame hosting the course."""
    resolved = settings or get_settings()
    adapter = ScormAdapter(
        root,
        search_depth=resolved.host_search_depth,
        scorm12_limit=resolved.scorm12_suspend_limit,
        scorm2004_limit=resolved.scorm2004_suspend_limit,
    )
    return StateEngine(
        adapter,
        build_local_storage(resolved),
        settings=resolved,
        lock=lock,
        telemetry=telemetry,
    )


__all__ = ["CommitPhase", "StateEngine", "build_state_engine"]
