import logging
from typing import Awaitable, Callable
import httpx
from wxpush.modules.channels.schemas import Channel
from wxpush.modules.wechat.client import WeChatClient
from wxpush.modules.wechat.errors import TOKEN_INVALID_CODES, get_wechat_error_message
from wxpush.modules.wechat.schemas import SendResult
from wxpush.modules.wechat.token_service import AccessTokenService

log = logging.getLogger("wechat.delivery")

SendFn = Callable[[str], Awaitable[dict]]

def _to_result(data) -> SendResult:
    if not isinstance(data, dict):
        log.warning(f"Unexpected send response from WeChat: {data!r}")
        return SendResult(success=False, error="Unexpected response from WeChat")
    errcode = data.get("errcode", 0)
    if errcode == 0:
        msgid = data.get("msgid")
        return SendResult(success=True, msg_id=str(msgid) if msgid is not None else "")
    return SendResult(success=False, error=get_wechat_error_message(errcode), error_code=errcode)

class DeliveryClient:
    def __init__(self, tokens: AccessTokenService, client: WeChatClient):
        self.tokens = tokens
        self.client = client

    async def _call(self, send: SendFn, token: str) -> SendResult:
        try:
            return _to_result(await send(token))
        except (httpx.HTTPError, ValueError) as e:
            log.warning(f"WeChat send failed at transport level: {e}")
            return SendResult(success=False, error=str(e) or e.__class__.__name__)

    async def _deliver_with_token_refresh(self, channel: Channel, send: SendFn) -> SendResult:
        token = await self.tokens.get_access_token(channel)
        if not token:
            return SendResult(success=False, error="Failed to get access token")

        result = await self._call(send, token)
        if result.success or result.error_code not in TOKEN_INVALID_CODES:
            return result

        log.info(f"Token rejected by WeChat ({result.error_code}) for channel={channel.id}; refreshing once")
        fresh = await self.tokens.get_access_token(channel, force_refresh=True)
        if not fresh:
            return result
        return await self._call(send, fresh)

    async def send_custom_message(self, channel: Channel, open_id: str, content: str) -> SendResult:
        return await self._deliver_with_token_refresh(
            channel, lambda token: self.client.send_custom(token, open_id, content)
        )

    async def send_template_message(self, channel: Channel, open_id: str, template_id: str, data: dict) -> SendResult:
        return await self._deliver_with_token_refresh(
            channel, lambda token: self.client.send_template(token, open_id, template_id, data)
        )
