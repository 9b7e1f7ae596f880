import asyncio
import logging
from wxpush.core.base import utcnow
from wxpush.platform.ports.kv_store import KVStorePort
from wxpush.modules.apps.schemas import App, Recipient

log = logging.getLogger(__name__)

APP_KEY = "app:{}"
APP_KEY_INDEX = "app_key:{}"
APP_LIST = "app_list"
OPENID_KEY = "openid:{}"
APP_OPENIDS = "app_openids:{}"

class AppRepository:
    def __init__(self, kv: KVStorePort):
        self.kv = kv

    async def get(self, app_id: str) -> App | None:
        return App.from_store(await self.kv.get(APP_KEY.format(app_id)))

    async def get_by_key(self, key: str) -> App | None:
        app_id = await self.kv.get(APP_KEY_INDEX.format(key))
        if not app_id:
            return None
        return await self.get(app_id)

    async def list(self) -> list[App]:
        ids = await self.kv.get(APP_LIST) or []
        found = await asyncio.gather(*(self.get(i) for i in ids))
        return [a for a in found if a is not None]

    async def create(self, app: App) -> App:
        if await self.kv.get(APP_KEY_INDEX.format(app.key)):
            raise ValueError("app_key_conflict")
        await asyncio.gather(
            self.kv.put(APP_KEY.format(app.id), app.to_store()),
            self.kv.put(APP_KEY_INDEX.format(app.key), app.id),
        )
        ids = await self.kv.get(APP_LIST) or []
        ids.append(app.id)
        await self.kv.put(APP_LIST, ids)
        return app

    async def delete(self, app_id: str, recipients: "RecipientRepository") -> bool:
        """Remove the app, its key index and every recipient bound to it."""
        app = await self.get(app_id)
        if not app:
            return False
        removed = await recipients.delete_all_for_app(app_id)
        await asyncio.gather(
            self.kv.delete(APP_KEY.format(app_id)),
            self.kv.delete(APP_KEY_INDEX.format(app.key)),
        )
        ids = await self.kv.get(APP_LIST) or []
        await self.kv.put(APP_LIST, [i for i in ids if i != app_id])
        log.info(f"Deleted app {app_id} and {removed} bound recipients")
        return True

class RecipientRepository:
    def __init__(self, kv: KVStorePort):
        self.kv = kv

    async def get(self, record_id: str) -> Recipient | None:
        return Recipient.from_store(await self.kv.get(OPENID_KEY.format(record_id)))

    async def list_by_app(self, app_id: str) -> list[Recipient]:
        """Recipients in bind order (earliest first)."""
        ids = await self.kv.get(APP_OPENIDS.format(app_id)) or []
        found = await asyncio.gather(*(self.get(i) for i in ids))
        return [r for r in found if r is not None]

    async def count_by_app(self, app_id: str) -> int:
        return len(await self.kv.get(APP_OPENIDS.format(app_id)) or [])

    async def add(self, recipient: Recipient) -> Recipient:
        existing = await self.list_by_app(recipient.app_id)
        if any(r.open_id == recipient.open_id for r in existing):
            raise ValueError("openid_already_bound")
        recipient.updated_at = utcnow()
        await self.kv.put(OPENID_KEY.format(recipient.id), recipient.to_store())
        ids = await self.kv.get(APP_OPENIDS.format(recipient.app_id)) or []
        ids.append(recipient.id)
        await self.kv.put(APP_OPENIDS.format(recipient.app_id), ids)
        return recipient

    async def delete_all_for_app(self, app_id: str) -> int:
        ids = await self.kv.get(APP_OPENIDS.format(app_id)) or []
        await asyncio.gather(*(self.kv.delete(OPENID_KEY.format(i)) for i in ids))
        await self.kv.delete(APP_OPENIDS.format(app_id))
        return len(ids)
