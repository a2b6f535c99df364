"""Single-writer election between tabs sharing one learner document.

Tabs talk over a :class:`LockChannel`. A tab asks for the lock, waits briefly
for a denial from the current holder, and otherwise announces itself as the
holder and starts sending heartbeats. Listeners that stop hearing heartbeats
treat the holder as stale and try to take over. The holder is handed a
:class:`LockHandle`; the persistence engine only ever looks at that token.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

CHANNEL_NAME = "palliative-care-game-lock"
ACQUISITION_TIMEOUT_SECONDS = 1.0
HEARTBEAT_INTERVAL_SECONDS = 2.0
STALE_LOCK_TIMEOUT_SECONDS = 5.0

LOCK_REQUEST = "LOCK_REQUEST"
LOCK_GRANTED = "LOCK_GRANTED"
LOCK_DENIED = "LOCK_DENIED"
HEARTBEAT = "HEARTBEAT"
LOCK_RELEASED = "LOCK_RELEASED"


@dataclass(frozen=True)
class LockMessage:
    type: str
    tab_id: str
    holder_tab_id: Optional[str] = None


@dataclass
class LockHandle:
    """Capability token proving the bearer's tab may persist mutations."""

    tab_id: str
    acquired_at: float
    _revoked: bool = field(default=False, repr=False)

    @property
    def valid(self) -> bool:
        return not self._revoked

    def revoke(self) -> None:
        self._revoked = True


MessageHandler = Callable[[LockMessage], None]
LockChangeHandler = Callable[[Optional[LockHandle]], None]


class LockChannel:
    """In-process broadcast channel; a message never echoes back to its sender."""

    def __init__(self, name: str = CHANNEL_NAME) -> None:
        self.name = name
        self._subscribers: List[MessageHandler] = []

    def subscribe(self, handler: MessageHandler) -> Callable[[], None]:
        self._subscribers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return _unsubscribe

    def post(self, message: LockMessage, *, sender: Optional[MessageHandler] = None) -> None:
        for handler in list(self._subscribers):
            if sender is not None and handler == sender:
                continue
            try:
                handler(message)
            except Exception:  # noqa: BLE001
                logger.exception("Lock channel subscriber failed for %s", message.type)


class TabLockManager:
    def __init__(
        self,
        channel: Optional[LockChannel] = None,
        *,
        tab_id: Optional[str] = None,
        acquisition_timeout: float = ACQUISITION_TIMEOUT_SECONDS,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        stale_timeout: float = STALE_LOCK_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.tab_id = tab_id or str(uuid.uuid4())
        self._channel = channel
        self._acquisition_timeout = acquisition_timeout
        self._heartbeat_interval = heartbeat_interval
        self._stale_timeout = stale_timeout
        self._clock = clock
        self._handle: Optional[LockHandle] = None
        self._holder_tab_id: Optional[str] = None
        self._last_heartbeat = 0.0
        self._denied = False
        self._listeners: List[LockChangeHandler] = []
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._monitor_task: Optional[asyncio.Task[None]] = None
        self._acquire_task: Optional[asyncio.Task[Optional[LockHandle]]] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        if channel is None:
            logger.warning("No lock channel available, running in single-tab mode")
            self._handle = LockHandle(tab_id=self.tab_id, acquired_at=self._clock())
        else:
            self._unsubscribe = channel.subscribe(self._on_message)

    @property
    def is_holder(self) -> bool:
        return self._handle is not None and self._handle.valid

    @property
    def handle(self) -> Optional[LockHandle]:
        return self._handle if self.is_holder else None

    @property
    def holder_tab_id(self) -> Optional[str]:
        return self._holder_tab_id

    def on_lock_change(self, handler: LockChangeHandler) -> Callable[[], None]:
        self._listeners.append(handler)

        def _unsubscribe() -> None:
            if handler in self._listeners:
                self._listeners.remove(handler)

        return _unsubscribe

    async def acquire(self) -> Optional[LockHandle]:
        if self._channel is None:
            if not self.is_holder:
                self._handle = LockHandle(tab_id=self.tab_id, acquired_at=self._clock())
            self._notify()
            return self._handle
        if self.is_holder:
            return self._handle
        self.start_monitoring()

        self._denied = False
        self._post(LockMessage(LOCK_REQUEST, self.tab_id))
        await asyncio.sleep(self._acquisition_timeout)

        if self._denied:
            logger.info("Lock denied, tab %s is read-only", self.tab_id)
            self._notify()
            return None

        self._handle = LockHandle(tab_id=self.tab_id, acquired_at=self._clock())
        self._holder_tab_id = self.tab_id
        self._post(LockMessage(LOCK_GRANTED, self.tab_id))
        self._start_heartbeat()
        logger.info("Lock acquired by tab %s", self.tab_id)
        self._notify()
        return self._handle

    def release(self) -> None:
        if not self.is_holder:
            return
        assert self._handle is not None
        self._handle.revoke()
        self._handle = None
        self._holder_tab_id = None
        self._stop_heartbeat()
        self._post(LockMessage(LOCK_RELEASED, self.tab_id))
        logger.info("Lock released by tab %s", self.tab_id)
        self._notify()

    def check_stale(self) -> bool:
        """Re-contend for the lock when the holder has gone quiet."""
        if self.is_holder or self._holder_tab_id is None:
            return False
        if self._clock() - self._last_heartbeat <= self._stale_timeout:
            return False
        logger.warning("Lock holder %s appears stale, attempting acquisition", self._holder_tab_id)
        self._holder_tab_id = None
        self._schedule_acquire()
        return True

    def start_monitoring(self) -> None:
        if self._channel is None or self._monitor_task is not None:
            return
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor())

    def close(self) -> None:
        self._stop_heartbeat()
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    def _on_message(self, message: LockMessage) -> None:
        if message.type == LOCK_REQUEST:
            if self.is_holder:
                self._post(LockMessage(LOCK_DENIED, message.tab_id, holder_tab_id=self.tab_id))
        elif message.type == LOCK_DENIED:
            if message.tab_id == self.tab_id:
                self._denied = True
                self._holder_tab_id = message.holder_tab_id
                self._last_heartbeat = self._clock()
        elif message.type == LOCK_GRANTED:
            if message.tab_id != self.tab_id:
                self._holder_tab_id = message.tab_id
                self._last_heartbeat = self._clock()
        elif message.type == HEARTBEAT:
            if message.tab_id == self._holder_tab_id:
                self._last_heartbeat = self._clock()
        elif message.type == LOCK_RELEASED:
            if message.tab_id == self._holder_tab_id:
                logger.info("Lock released by %s, attempting acquisition", message.tab_id)
                self._holder_tab_id = None
                self._schedule_acquire()

    def _post(self, message: LockMessage) -> None:
        if self._channel is not None:
            self._channel.post(message, sender=self._on_message)

    def _notify(self) -> None:
        handle = self.handle
        for listener in list(self._listeners):
            try:
                listener(handle)
            except Exception:  # noqa: BLE001
                logger.exception("Lock change listener failed")

    def _schedule_acquire(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; tab %s will not re-contend for the lock", self.tab_id)
            return
        self._acquire_task = loop.create_task(self.acquire())

    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        self._heartbeat_task = asyncio.get_running_loop().create_task(self._heartbeat())

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    async def _heartbeat(self) -> None:
        while self.is_holder:
            await asyncio.sleep(self._heartbeat_interval)
            if self.is_holder:
                self._post(LockMessage(HEARTBEAT, self.tab_id))

    async def _monitor(self) -> None:
        while True:
            await asyncio.sleep(self._stale_timeout / 2)
            self.check_stale()


__all__ = [
    "LockChannel",
    "LockHandle",
    "LockMessage",
    "TabLockManager",
]
