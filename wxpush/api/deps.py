from wxpush.core.config import settings
from wxpush.platform.provider_registry import registry
from wxpush.modules.apps.repository import AppRepository, RecipientRepository
from wxpush.modules.channels.repository import ChannelRepository
from wxpush.modules.messages.service import MessageService
from wxpush.modules.push.rate_limit import FixedWindowRateLimiter
from wxpush.modules.push.service import PushService
from wxpush.modules.wechat.client import WeChatClient
from wxpush.modules.wechat.delivery import DeliveryClient
from wxpush.modules.wechat.token_service import AccessTokenService

def wechat_client() -> WeChatClient:
    return WeChatClient(registry.http_client(), settings.WECHAT_API_BASE)

def token_service() -> AccessTokenService:
    return AccessTokenService(registry.kv_store(), wechat_client(), registry.token_cache())

def message_service() -> MessageService:
    return MessageService(registry.kv_store())

def channel_repo() -> ChannelRepository:
    return ChannelRepository(registry.kv_store())

def app_repo() -> AppRepository:
    return AppRepository(registry.kv_store())

def recipient_repo() -> RecipientRepository:
    return RecipientRepository(registry.kv_store())

def push_service() -> PushService:
    kv = registry.kv_store()
    client = wechat_client()
    tokens = AccessTokenService(kv, client, registry.token_cache())
    return PushService(
        apps=AppRepository(kv),
        recipients=RecipientRepository(kv),
        channels=ChannelRepository(kv),
        delivery=DeliveryClient(tokens, client),
        messages=MessageService(kv),
    )

def rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(registry.kv_store(), settings.RATE_LIMIT_PER_MINUTE)
