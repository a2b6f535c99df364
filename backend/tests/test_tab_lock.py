from __future__ import annotations

import asyncio
from typing import List, Optional

from progress_engine.tab_lock import (
    HEARTBEAT,
    LockChannel,
    LockHandle,
    LockMessage,
    TabLockManager,
)

FAST = {"acquisition_timeout": 0.01, "heartbeat_interval": 0.01}
QUIET = {"acquisition_timeout": 0.01, "heartbeat_interval": 60.0}


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_single_tab_mode_holds_lock_immediately() -> None:
    lock = TabLockManager(tab_id="solo")
    seen: List[Optional[LockHandle]] = []
    lock.on_lock_change(seen.append)

    assert lock.is_holder
    handle = asyncio.run(lock.acquire())

    assert handle is not None and handle.valid
    assert handle.tab_id == "solo"
    assert seen == [handle]


def test_second_tab_is_denied_while_first_holds() -> None:
    channel = LockChannel()
    first = TabLockManager(channel, tab_id="tab-a", **FAST)
    second = TabLockManager(channel, tab_id="tab-b", **FAST)
    changes: List[Optional[LockHandle]] = []
    second.on_lock_change(changes.append)

    async def scenario():
        granted = await first.acquire()
        denied = await second.acquire()
        first.close()
        second.close()
        return granted, denied

    granted, denied = asyncio.run(scenario())

    assert granted is not None and first.is_holder
    assert denied is None
    assert second.is_holder is False
    assert second.holder_tab_id == "tab-a"
    assert changes == [None]


def test_release_hands_lock_to_waiting_tab() -> None:
    channel = LockChannel()
    first = TabLockManager(channel, tab_id="tab-a", **FAST)
    second = TabLockManager(channel, tab_id="tab-b", **FAST)
    first_changes: List[Optional[LockHandle]] = []
    first.on_lock_change(first_changes.append)

    async def scenario():
        handle = await first.acquire()
        await second.acquire()
        first.release()
        await asyncio.sleep(0.1)
        first.close()
        second.close()
        return handle

    original = asyncio.run(scenario())

    assert original is not None and original.valid is False
    assert first_changes[-1] is None
    assert second.is_holder
    assert first.holder_tab_id == "tab-b"


def test_stale_holder_is_replaced() -> None:
    clock = _FakeClock()
    channel = LockChannel()
    first = TabLockManager(channel, tab_id="tab-a", clock=clock, **QUIET)
    second = TabLockManager(channel, tab_id="tab-b", clock=clock, **QUIET)

    async def scenario():
        await first.acquire()
        await second.acquire()

        clock.now += 3
        assert second.check_stale() is False

        # the holder's tab went away without announcing a release
        first.close()
        clock.now += 3
        assert second.check_stale() is True
        await asyncio.sleep(0.1)
        second.close()

    asyncio.run(scenario())

    assert second.is_holder


def test_heartbeat_keeps_holder_fresh() -> None:
    clock = _FakeClock()
    channel = LockChannel()
    first = TabLockManager(channel, tab_id="tab-a", clock=clock, **QUIET)
    second = TabLockManager(channel, tab_id="tab-b", clock=clock, **QUIET)

    async def scenario():
        await first.acquire()
        await second.acquire()
        clock.now += 4
        channel.post(LockMessage(HEARTBEAT, "tab-a"))
        clock.now += 4
        stale = second.check_stale()
        first.close()
        second.close()
        return stale

    assert asyncio.run(scenario()) is False
    assert second.holder_tab_id == "tab-a"


def test_channel_skips_sender_and_isolates_failures() -> None:
    channel = LockChannel()
    received: List[str] = []

    def _sender(message: LockMessage) -> None:
        received.append(f"sender:{message.type}")

    def _broken(message: LockMessage) -> None:
        raise RuntimeError("subscriber down")

    def _listener(message: LockMessage) -> None:
        received.append(f"listener:{message.type}")

    channel.subscribe(_sender)
    channel.subscribe(_broken)
    unsubscribe = channel.subscribe(_listener)

    channel.post(LockMessage(HEARTBEAT, "tab-a"), sender=_sender)
    unsubscribe()
    channel.post(LockMessage(HEARTBEAT, "tab-a"), sender=_sender)

    assert received == ["listener:HEARTBEAT"]


def test_follower_takes_over_when_holder_goes_silent() -> None:
    channel = LockChannel()
    timing = {"acquisition_timeout": 0.01, "heartbeat_interval": 0.01, "stale_timeout": 0.05}
    holder = TabLockManager(channel, tab_id="tab-a", **timing)
    follower = TabLockManager(channel, tab_id="tab-b", **timing)
    changes: List[Optional[LockHandle]] = []
    follower.on_lock_change(changes.append)

    async def scenario():
        await holder.acquire()
        assert await follower.acquire() is None
        # the holder's tab is gone without sending LOCK_RELEASED
        holder.close()
        await asyncio.sleep(0.5)
        taken_over = follower.is_holder
        follower.close()
        return taken_over

    assert asyncio.run(scenario()) is True
    assert changes[0] is None
    assert changes[-1] is not None and changes[-1].tab_id == "tab-b"
