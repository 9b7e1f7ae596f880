import json
import logging
from typing import Any
from wxpush.platform.ports.kv_store import KVStorePort

log = logging.getLogger("kv.redis")

class RedisKVStore(KVStorePort):
    def __init__(self, redis, namespace: str = ""):
        self.redis = redis
        self.namespace = namespace

    def _k(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self.redis.get(self._k(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            log.warning(f"[REDIS KV] non-JSON value at key={key}, returning raw string")
            return raw

    async def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        await self.redis.set(self._k(key), payload, ex=ttl_seconds or None)
        log.debug(f"[REDIS KV] SET key={key} ttl={ttl_seconds}")

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._k(key))

    async def list(self, prefix: str) -> list[str]:
        keys = []
        cut = len(self.namespace)
        async for k in self.redis.scan_iter(match=f"{self._k(prefix)}*", count=500):
            keys.append(k[cut:])
        return sorted(keys)
