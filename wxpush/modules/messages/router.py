from datetime import date, datetime, time, timezone
from fastapi import APIRouter, Depends, Query
from wxpush.api.deps import app_repo, channel_repo, message_service, recipient_repo
from wxpush.core.config import settings
from wxpush.core.errors import ApiError, ErrorCode, success_body
from wxpush.core.security import require_scopes
from wxpush.modules.apps.repository import AppRepository, RecipientRepository
from wxpush.modules.channels.repository import ChannelRepository
from wxpush.modules.messages.schemas import Direction, MessageQuery
from wxpush.modules.messages.service import MessageService

router = APIRouter()

def _parse_date(value: str | None, name: str, *, end_of_day: bool = False) -> datetime | None:
    if not value:
        return None
    try:
        if len(value) == 10:
            d = date.fromisoformat(value)
            return datetime.combine(d, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        dt = datetime.fromisoformat(value)
    except ValueError:
        raise ApiError.bad_request(f"{name} must be an ISO-8601 date or datetime")
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

@router.get("/messages", dependencies=[Depends(require_scopes("messages:read"))])
async def list_messages(
    page: int = Query(default=1),
    page_size: int = Query(default=20, alias="pageSize"),
    channel_id: str | None = Query(default=None, alias="channelId"),
    app_id: str | None = Query(default=None, alias="appId"),
    open_id: str | None = Query(default=None, alias="openId"),
    direction: str | None = None,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    service: MessageService = Depends(message_service),
):
    if page < 1:
        raise ApiError.bad_request("page must be >= 1")
    if page_size < 1 or page_size > 100:
        raise ApiError.bad_request("pageSize must be between 1 and 100")
    if direction and direction not in (Direction.INBOUND.value, Direction.OUTBOUND.value):
        raise ApiError.bad_request("direction must be inbound or outbound")

    q = MessageQuery(
        page=page,
        page_size=page_size,
        channel_id=channel_id,
        app_id=app_id,
        open_id=open_id,
        direction=Direction(direction) if direction else None,
        start_date=_parse_date(start_date, "startDate"),
        end_date=_parse_date(end_date, "endDate", end_of_day=True),
    )
    result = await service.list(q)
    return success_body(result.to_store())

@router.get("/messages/{message_id}", dependencies=[Depends(require_scopes("messages:read"))])
async def get_message(message_id: str, service: MessageService = Depends(message_service)):
    message = await service.get(message_id)
    if not message:
        raise ApiError.not_found(ErrorCode.MESSAGE_NOT_FOUND)
    return success_body(message.to_store())

@router.delete("/messages/{message_id}", dependencies=[Depends(require_scopes("messages:write"))])
async def delete_message(message_id: str, service: MessageService = Depends(message_service)):
    if not await service.delete(message_id):
        raise ApiError.not_found(ErrorCode.MESSAGE_NOT_FOUND)
    return success_body({"deleted": True})

@router.post("/messages/cleanup", dependencies=[Depends(require_scopes("messages:write"))])
async def cleanup_messages(
    retention_days: int = Query(default=settings.RETENTION_DAYS, alias="retentionDays", ge=0),
    service: MessageService = Depends(message_service),
):
    deleted = await service.cleanup(retention_days)
    return success_body({"deleted": deleted})

@router.get("/stats", dependencies=[Depends(require_scopes("messages:read"))])
async def stats(
    service: MessageService = Depends(message_service),
    channels: ChannelRepository = Depends(channel_repo),
    apps: AppRepository = Depends(app_repo),
    recipients: RecipientRepository = Depends(recipient_repo),
):
    channel_list = await channels.list()
    app_list = await apps.list()
    open_ids = sum([await recipients.count_by_app(a.id) for a in app_list])
    message_stats = await service.get_stats()
    return success_body({
        "channels": len(channel_list),
        "apps": len(app_list),
        "openIds": open_ids,
        "messages": message_stats.to_store(),
    })
