import asyncio
import copy
import logging
import time
from typing import Any
from wxpush.platform.ports.kv_store import KVStorePort

log = logging.getLogger("kv.memory")

class InMemoryKVStore(KVStorePort):
    """Process-local store for development and tests. Values are deep-copied on the way in and out."""

    def __init__(self, clock=time.monotonic):
        self._data: dict[str, tuple[Any, float | None]] = {}
        self._clock = clock

    def _alive(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return False
        return True

    async def get(self, key: str) -> Any | None:
        await asyncio.sleep(0)
        if not self._alive(key):
            return None
        return copy.deepcopy(self._data[key][0])

    async def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        await asyncio.sleep(0)
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (copy.deepcopy(value), expires_at)

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

    async def list(self, prefix: str) -> list[str]:
        await asyncio.sleep(0)
        return sorted(k for k in list(self._data) if k.startswith(prefix) and self._alive(k))

    def clear(self):
        self._data.clear()
