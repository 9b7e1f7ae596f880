import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from wxpush.api.deps import channel_repo, message_service
from wxpush.modules.channels.repository import ChannelRepository
from wxpush.modules.messages.service import MessageService
from wxpush.modules.wechat.callback import CallbackParseError, inbound_message, parse_xml_message, verify_signature

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/wechat/{channel_id}", response_class=PlainTextResponse, tags=["wechat"])
async def verify_server(
    channel_id: str,
    signature: str = "",
    timestamp: str = "",
    nonce: str = "",
    echostr: str = "",
    channels: ChannelRepository = Depends(channel_repo),
):
    """Server URL verification handshake from the WeChat console."""
    channel = await channels.get(channel_id)
    if not channel or not verify_signature(channel.config.msg_token, signature, timestamp, nonce):
        return PlainTextResponse("invalid signature", status_code=403)
    return PlainTextResponse(echostr)

@router.post("/wechat/{channel_id}", response_class=PlainTextResponse, tags=["wechat"])
async def receive_message(
    channel_id: str,
    request: Request,
    signature: str = "",
    timestamp: str = "",
    nonce: str = "",
    channels: ChannelRepository = Depends(channel_repo),
    messages: MessageService = Depends(message_service),
):
    """Record user messages and events as inbound history. Always answers `success` once the signature checks out."""
    channel = await channels.get(channel_id)
    if not channel or not verify_signature(channel.config.msg_token, signature, timestamp, nonce):
        return PlainTextResponse("invalid signature", status_code=403)

    try:
        fields = parse_xml_message(await request.body())
    except CallbackParseError as e:
        logger.warning(f"Callback for channel {channel_id} rejected: {e}")
        return PlainTextResponse("bad request", status_code=400)

    record = inbound_message(channel_id, fields)
    try:
        await messages.save_message(record)
    except Exception:
        logger.exception(f"Failed to record inbound message for channel {channel_id}")
    # WeChat retries three times unless it gets an answer within 5s
    return PlainTextResponse("success")
