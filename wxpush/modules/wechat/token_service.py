"""
Access-token cache for WeChat official accounts.

Tokens live in two tiers: a process-memory map (TokenMemoryCache) and the KV
store. Both are keyed by the channel's AppID only, so channels that share
credentials share one token. There is no lock around refresh; concurrent
callers may each fetch a token and the last write wins, which is harmless
because every issued token is valid until it expires.
"""
import logging
import httpx
from wxpush.core.base import now_ms
from wxpush.core.config import settings
from wxpush.platform.ports.kv_store import KVStorePort
from wxpush.modules.channels.schemas import Channel, ChannelVerifyResult
from wxpush.modules.wechat.client import WeChatClient
from wxpush.modules.wechat.errors import get_wechat_error_message
from wxpush.modules.wechat.schemas import CachedToken, TokenStatus

log = logging.getLogger("wechat.token")

NETWORK_ERROR = "Network request failed"
UNEXPECTED_RESPONSE = "Unexpected token response"

def token_cache_key(channel: Channel) -> str:
    return f"token:{channel.config.app_id}"

def token_status_key(channel_id: str) -> str:
    return f"token_status:{channel_id}"

class TokenMemoryCache:
    """Process-wide token map. One instance per process, owned by the provider registry."""

    def __init__(self):
        self._tokens: dict[str, CachedToken] = {}

    def get(self, key: str, now: int) -> CachedToken | None:
        tok = self._tokens.get(key)
        if tok and tok.expires_at > now:
            return tok
        return None

    def set(self, key: str, token: CachedToken):
        self._tokens[key] = token

    def __len__(self):
        return len(self._tokens)

class AccessTokenService:
    def __init__(self, kv: KVStorePort, client: WeChatClient, memory: TokenMemoryCache, *,
                 expiry_margin: int | None = None, kv_ttl: int | None = None, status_ttl: int | None = None,
                 clock=now_ms):
        self.kv = kv
        self.client = client
        self.memory = memory
        self.expiry_margin = settings.TOKEN_EXPIRY_MARGIN_SECONDS if expiry_margin is None else expiry_margin
        self.kv_ttl = kv_ttl or settings.ACCESS_TOKEN_KV_TTL
        self.status_ttl = status_ttl or settings.TOKEN_STATUS_TTL
        self.clock = clock

    async def _record_status(self, channel_id: str, status: TokenStatus):
        # status is observability only; a failed write must not change the outcome
        try:
            await self.kv.put(token_status_key(channel_id), status.to_store(), self.status_ttl)
        except Exception:
            log.exception(f"Failed to record token status for channel={channel_id}")

    async def _record_failure(self, channel_id: str, error: str, error_code: int | None = None):
        await self._record_status(channel_id, TokenStatus(
            valid=False,
            last_refresh_at=self.clock(),
            last_refresh_success=False,
            error=error,
            error_code=error_code,
        ))

    async def get_token_status(self, channel_id: str) -> TokenStatus | None:
        return TokenStatus.from_store(await self.kv.get(token_status_key(channel_id)))

    async def get_access_token(self, channel: Channel, force_refresh: bool = False) -> str | None:
        """Return a usable access token, or None when one cannot be obtained. Never raises for provider or network failures."""
        if not channel.has_credentials:
            log.error(f"Channel {channel.id} has no AppID/AppSecret configured")
            return None

        key = token_cache_key(channel)

        if not force_refresh:
            cached = self.memory.get(key, self.clock())
            if cached:
                return cached.access_token

            stored = CachedToken.from_store(await self.kv.get(key))
            if stored and stored.access_token and stored.expires_at > self.clock():
                self.memory.set(key, stored)
                return stored.access_token

        return await self._refresh(channel, key)

    async def _refresh(self, channel: Channel, key: str) -> str | None:
        log.info(f"Fetching new access token for channel={channel.id} appid={channel.config.app_id}")
        try:
            data = await self.client.fetch_token(channel.config.app_id, channel.config.app_secret)
        except (httpx.HTTPError, ValueError) as e:
            log.error(f"Network error fetching access token for channel={channel.id}: {e}")
            await self._record_failure(channel.id, NETWORK_ERROR)
            return None

        if not isinstance(data, dict):
            log.error(f"Unexpected token response for channel={channel.id}: {data!r}")
            await self._record_failure(channel.id, UNEXPECTED_RESPONSE)
            return None

        errcode = data.get("errcode")
        if errcode:
            log.error(f"Failed to get access token for channel={channel.id}: {data}")
            await self._record_failure(channel.id, get_wechat_error_message(errcode), errcode)
            return None

        access_token = data.get("access_token")
        expires_in = data.get("expires_in")
        if not access_token or not expires_in:
            log.error(f"Token response missing fields for channel={channel.id}: {data}")
            await self._record_failure(channel.id, "Token response missing access_token or expires_in")
            return None

        now = self.clock()
        token = CachedToken(access_token=access_token, expires_at=now + (int(expires_in) - self.expiry_margin) * 1000)
        self.memory.set(key, token)
        try:
            await self.kv.put(key, token.to_store(), self.kv_ttl)
        except Exception:
            log.exception(f"Failed to store access token for channel={channel.id}; serving it from memory")
        await self._record_status(channel.id, TokenStatus(
            valid=True,
            last_refresh_at=now,
            last_refresh_success=True,
            expires_at=token.expires_at,
        ))
        log.info(f"Access token refreshed for channel={channel.id}, expires_at={token.expires_at}")
        return access_token

    async def verify_channel(self, channel: Channel) -> ChannelVerifyResult:
        """Force a refresh to prove the channel's credentials work."""
        token = await self.get_access_token(channel, force_refresh=True)
        if token:
            cached = self.memory.get(token_cache_key(channel), self.clock())
            expires_in = (cached.expires_at - self.clock()) // 1000 if cached else None
            return ChannelVerifyResult(valid=True, expires_in=expires_in)

        status = await self.get_token_status(channel.id)
        if status is None:
            return ChannelVerifyResult(valid=False, error="Verification failed")
        return ChannelVerifyResult(valid=False, error=status.error or "Verification failed", error_code=status.error_code)
