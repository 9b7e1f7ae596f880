import asyncio
from wxpush.core.base import utcnow
from wxpush.platform.ports.kv_store import KVStorePort
from wxpush.modules.channels.schemas import Channel

CHANNEL_KEY = "channel:{}"
CHANNEL_LIST = "channel_list"

class ChannelRepository:
    def __init__(self, kv: KVStorePort):
        self.kv = kv

    async def get(self, channel_id: str) -> Channel | None:
        return Channel.from_store(await self.kv.get(CHANNEL_KEY.format(channel_id)))

    async def list(self) -> list[Channel]:
        ids = await self.kv.get(CHANNEL_LIST) or []
        found = await asyncio.gather(*(self.get(i) for i in ids))
        return [c for c in found if c is not None]

    async def save(self, channel: Channel) -> Channel:
        channel.updated_at = utcnow()
        await self.kv.put(CHANNEL_KEY.format(channel.id), channel.to_store())
        ids = await self.kv.get(CHANNEL_LIST) or []
        if channel.id not in ids:
            ids.append(channel.id)
            await self.kv.put(CHANNEL_LIST, ids)
        return channel

