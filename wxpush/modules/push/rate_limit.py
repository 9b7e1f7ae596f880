import time
from wxpush.platform.ports.kv_store import KVStorePort

class FixedWindowRateLimiter:
    """Per-key counter in one-minute windows, stored in the KV store with a TTL. Best effort: the increment is not atomic."""

    def __init__(self, kv: KVStorePort, per_minute: int, clock=time.time):
        self.kv = kv
        self.per_minute = per_minute
        self.clock = clock

    async def hit(self, key: str) -> bool:
        """Count one request; False when the window is already full."""
        if self.per_minute <= 0:
            return True
        window = int(self.clock() // 60)
        counter_key = f"rate:{key}:{window}"
        count = await self.kv.get(counter_key) or 0
        if count >= self.per_minute:
            return False
        await self.kv.put(counter_key, count + 1, 60)
        return True
