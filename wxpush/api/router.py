from fastapi import APIRouter
from wxpush.modules.messages.router import router as messages_router
from wxpush.modules.channels.router import router as channels_router
from wxpush.modules.push.router import router as push_router
from wxpush.modules.wechat.router import router as wechat_router

api_router = APIRouter()
api_router.include_router(messages_router, tags=["messages"])
api_router.include_router(channels_router, tags=["channels"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}

# mounted at the root: webhook URLs and the WeChat callback are public
public_router = APIRouter()
public_router.include_router(wechat_router)
public_router.include_router(push_router)
