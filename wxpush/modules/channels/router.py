from fastapi import APIRouter, Depends
from wxpush.api.deps import channel_repo, token_service
from wxpush.core.errors import ApiError, ErrorCode, success_body
from wxpush.core.security import require_scopes
from wxpush.modules.channels.repository import ChannelRepository
from wxpush.modules.wechat.token_service import AccessTokenService

router = APIRouter()

async def _channel_or_404(channel_id: str, channels: ChannelRepository):
    channel = await channels.get(channel_id)
    if not channel:
        raise ApiError.not_found(ErrorCode.CHANNEL_NOT_FOUND)
    return channel

@router.get("/channels/{channel_id}/token-status", dependencies=[Depends(require_scopes("channels:read"))])
async def get_token_status(
    channel_id: str,
    channels: ChannelRepository = Depends(channel_repo),
    tokens: AccessTokenService = Depends(token_service),
):
    await _channel_or_404(channel_id, channels)
    status = await tokens.get_token_status(channel_id)
    return success_body(status.to_store() if status else None)

@router.post("/channels/{channel_id}/verify", dependencies=[Depends(require_scopes("channels:write"))])
async def verify_channel(
    channel_id: str,
    channels: ChannelRepository = Depends(channel_repo),
    tokens: AccessTokenService = Depends(token_service),
):
    channel = await _channel_or_404(channel_id, channels)
    result = await tokens.verify_channel(channel)
    return success_body(result.to_store())
