import asyncio
import logging
from datetime import timedelta
from wxpush.core.base import as_utc, utcnow
from wxpush.core.config import settings
from wxpush.core.paging import chunked, page_slice
from wxpush.platform.ports.kv_store import KVStorePort
from wxpush.modules.messages.repository import (
    MESSAGE_LIST, MessageRepository, app_index, channel_index, message_key, openid_index,
)
from wxpush.modules.messages.schemas import (
    Direction, Message, MessageListResult, MessageQuery, MessageStats,
)

log = logging.getLogger("messages")

class MessageService:
    """
    Message history over a plain KV store.

    Each message body is stored under msg:<id>. Secondary lookups are served
    by newest-first id lists (global, per channel, per app, per recipient),
    each trimmed to a cap on insert. List updates are unsynchronized
    read-modify-writes, so two concurrent inserts into the same list can
    drop one id; the body is still stored and reachable by id.
    """

    def __init__(self, kv: KVStorePort, *, caps: dict[str, int] | None = None, batch_size: int | None = None,
                 clock=utcnow):
        self.repo = MessageRepository(kv)
        caps = caps or {}
        self.global_cap = caps.get("global", settings.MESSAGE_LIST_CAP)
        self.channel_cap = caps.get("channel", settings.CHANNEL_LIST_CAP)
        self.app_cap = caps.get("app", settings.APP_LIST_CAP)
        self.openid_cap = caps.get("openid", settings.OPENID_LIST_CAP)
        self.batch_size = batch_size or settings.SCAN_BATCH_SIZE
        self.clock = clock

    # ---- write ----
    async def save_message(self, message: Message):
        writes = [
            self.repo.put(message),
            self.repo.push_bounded(MESSAGE_LIST, message.id, self.global_cap),
        ]
        if message.channel_id:
            writes.append(self.repo.push_bounded(channel_index(message.channel_id), message.id, self.channel_cap))
        if message.app_id:
            writes.append(self.repo.push_bounded(app_index(message.app_id), message.id, self.app_cap))
        if message.open_id:
            writes.append(self.repo.push_bounded(openid_index(message.open_id), message.id, self.openid_cap))
        await asyncio.gather(*writes)

    # ---- read ----
    async def get(self, message_id: str) -> Message | None:
        return await self.repo.get(message_id)

    def _pick_index(self, q: MessageQuery) -> tuple[str, str | None]:
        if q.open_id:
            return openid_index(q.open_id), "open_id"
        if q.app_id:
            return app_index(q.app_id), "app_id"
        if q.channel_id:
            return channel_index(q.channel_id), "channel_id"
        return MESSAGE_LIST, None

    async def list(self, q: MessageQuery | None = None) -> MessageListResult:
        q = q or MessageQuery()
        index_key, covered = self._pick_index(q)
        ids = await self.repo.get_ids(index_key)

        id_filters = {f for f in ("channel_id", "app_id", "open_id") if getattr(q, f)}
        fast = not (q.direction or q.start_date or q.end_date) and id_filters <= {covered}
        if fast:
            messages = await self.repo.get_many(page_slice(ids, q.page, q.page_size))
            return MessageListResult(messages=messages, total=len(ids), page=q.page, page_size=q.page_size)

        matched = [m async for _, m in self.repo.scan([message_key(i) for i in ids], self.batch_size) if self._matches(m, q)]
        matched.sort(key=lambda m: as_utc(m.created_at), reverse=True)
        return MessageListResult(
            messages=page_slice(matched, q.page, q.page_size),
            total=len(matched),
            page=q.page,
            page_size=q.page_size,
        )

    @staticmethod
    def _matches(m: Message, q: MessageQuery) -> bool:
        if q.channel_id and m.channel_id != q.channel_id:
            return False
        if q.app_id and m.app_id != q.app_id:
            return False
        if q.open_id and m.open_id != q.open_id and not any(r.open_id == q.open_id for r in m.results):
            return False
        if q.direction and m.direction != q.direction:
            return False
        created = as_utc(m.created_at)
        if q.start_date and created < as_utc(q.start_date):
            return False
        if q.end_date and created > as_utc(q.end_date):
            return False
        return True

    async def list_by_app(self, app_id: str, q: MessageQuery | None = None) -> MessageListResult:
        q = (q or MessageQuery()).model_copy(update={"app_id": app_id})
        return await self.list(q)

    async def list_by_channel(self, channel_id: str, q: MessageQuery | None = None) -> MessageListResult:
        q = (q or MessageQuery()).model_copy(update={"channel_id": channel_id})
        return await self.list(q)

    async def list_by_open_id(self, open_id: str, q: MessageQuery | None = None) -> MessageListResult:
        q = (q or MessageQuery()).model_copy(update={"open_id": open_id})
        return await self.list(q)

    # ---- maintenance ----
    async def delete(self, message_id: str) -> bool:
        if await self.repo.get(message_id) is None:
            return False
        await self.repo.delete(message_id)
        return True

    async def cleanup(self, retention_days: int | None = None) -> int:
        days = settings.RETENTION_DAYS if retention_days is None else retention_days
        cutoff = self.clock() - timedelta(days=days)
        keys = await self.repo.message_keys()
        expired = [m.id async for _, m in self.repo.scan(keys, self.batch_size) if as_utc(m.created_at) < cutoff]
        for batch in chunked(expired, self.batch_size):
            await asyncio.gather(*(self.repo.delete(i) for i in batch))
        log.info(f"History cleanup removed {len(expired)} messages older than {days} days")
        return len(expired)

    async def get_stats(self) -> MessageStats:
        now = self.clock()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        stats = MessageStats()
        keys = await self.repo.message_keys()
        async for _, m in self.repo.scan(keys, self.batch_size):
            stats.total += 1
            if as_utc(m.created_at) >= midnight:
                stats.today += 1
            if m.direction is Direction.INBOUND:
                stats.inbound += 1
            else:
                stats.outbound += 1
            for r in m.results:
                if r.success:
                    stats.success += 1
                else:
                    stats.failed += 1
        return stats
