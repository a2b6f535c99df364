"""Coroutine facade over :class:`ScormAdapter`.

Host calls are synchronous and may block briefly; this wrapper lets async
call sites treat them like any other awaitable and leaves room for moving the
calls onto an executor without changing callers.
"""

from __future__ import annotations

from typing import Optional

from .adapter import ScormAdapter


class AsyncScormClient:
    def __init__(self, adapter: ScormAdapter) -> None:
        self._adapter = adapter

    @property
    def adapter(self) -> ScormAdapter:
        return self._adapter

    @property
    def version(self) -> Optional[str]:
        return self._adapter.version

    def is_available(self) -> bool:
        return self._adapter.is_available()

    async def initialize(self) -> bool:
        return self._adapter.initialize()

    async def get_value(self, key: str) -> str:
        return self._adapter.get_value(key)

    async def set_value(self, key: str, value: str) -> bool:
        return self._adapter.set_value(key, value)

    async def commit(self) -> bool:
        return self._adapter.commit()

    async def terminate(self) -> bool:
        return self._adapter.terminate()

    async def get_size_limit(self) -> int:
        return self._adapter.get_size_limit()


__all__ = ["AsyncScormClient"]
