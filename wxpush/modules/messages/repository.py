import asyncio
from typing import Sequence
from wxpush.core.paging import chunked
from wxpush.platform.ports.kv_store import KVStorePort
from wxpush.modules.messages.schemas import Message

MESSAGE_PREFIX = "msg:"
MESSAGE_LIST = "msg_list"

def message_key(message_id: str) -> str:
    return f"{MESSAGE_PREFIX}{message_id}"

def channel_index(channel_id: str) -> str:
    return f"msg_channel:{channel_id}"

def app_index(app_id: str) -> str:
    return f"msg_app:{app_id}"

def openid_index(open_id: str) -> str:
    return f"msg_openid:{open_id}"

class MessageRepository:
    def __init__(self, kv: KVStorePort):
        self.kv = kv

    async def put(self, message: Message):
        await self.kv.put(message_key(message.id), message.to_store())

    async def get(self, message_id: str) -> Message | None:
        return Message.from_store(await self.kv.get(message_key(message_id)))

    async def delete(self, message_id: str):
        await self.kv.delete(message_key(message_id))

    async def get_ids(self, index_key: str) -> list[str]:
        return await self.kv.get(index_key) or []

    async def push_bounded(self, index_key: str, message_id: str, cap: int):
        # read-modify-write without a transaction; concurrent writers can lose an update
        ids = await self.kv.get(index_key) or []
        ids.insert(0, message_id)
        del ids[cap:]
        await self.kv.put(index_key, ids)

    async def message_keys(self) -> list[str]:
        return await self.kv.list(MESSAGE_PREFIX)

    async def get_many(self, ids: Sequence[str]) -> list[Message]:
        """Fetch concurrently, keep input order, drop ids whose body is gone."""
        found = await asyncio.gather(*(self.get(i) for i in ids))
        return [m for m in found if m is not None]

    async def scan(self, keys: Sequence[str], batch_size: int):
        """Yield (key, message) over full keys, `batch_size` outstanding reads at a time."""
        for batch in chunked(keys, batch_size):
            found = await asyncio.gather(*(self.kv.get(k) for k in batch))
            for key, data in zip(batch, found):
                if data is not None:
                    yield key, Message.from_store(data)
