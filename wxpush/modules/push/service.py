import asyncio
import logging
from wxpush.core.base import new_id, utcnow
from wxpush.core.errors import ERROR_MESSAGES, ErrorCode
from wxpush.modules.apps.repository import AppRepository, RecipientRepository
from wxpush.modules.apps.schemas import App, MessageType, PushMode, Recipient
from wxpush.modules.channels.repository import ChannelRepository
from wxpush.modules.channels.schemas import Channel
from wxpush.modules.messages.schemas import DeliveryResult, Direction, Message
from wxpush.modules.messages.service import MessageService
from wxpush.modules.push.schemas import PushMessageInput, PushResult
from wxpush.modules.wechat.delivery import DeliveryClient

log = logging.getLogger("push")

def template_data(msg: PushMessageInput) -> dict:
    return {
        "first": {"value": msg.title or ""},
        "keyword1": {"value": msg.desp or ""},
        "remark": {"value": ""},
    }

def text_content(msg: PushMessageInput) -> str:
    return f"{msg.title}\n\n{msg.desp}" if msg.desp else msg.title

def select_targets(app: App, recipients: list[Recipient]) -> list[Recipient]:
    match app.push_mode:
        case PushMode.SINGLE:
            return recipients[:1]
        case PushMode.SUBSCRIBE:
            return list(recipients)

class PushService:
    def __init__(self, apps: AppRepository, recipients: RecipientRepository, channels: ChannelRepository,
                 delivery: DeliveryClient, messages: MessageService):
        self.apps = apps
        self.recipients = recipients
        self.channels = channels
        self.delivery = delivery
        self.messages = messages

    @staticmethod
    def _failure(push_id: str, code: ErrorCode) -> PushResult:
        return PushResult(push_id=push_id, error=ERROR_MESSAGES[code], error_code=code)

    async def push(self, app_key: str, msg: PushMessageInput) -> PushResult:
        push_id = new_id()
        created_at = utcnow()

        app = await self.apps.get_by_key(app_key)
        if not app:
            log.info(f"push {push_id}: unknown app key")
            return self._failure(push_id, ErrorCode.KEY_NOT_FOUND)

        recipients, channel = await asyncio.gather(
            self.recipients.list_by_app(app.id),
            self.channels.get(app.channel_id),
        )
        if not channel:
            log.warning(f"push {push_id}: app {app.id} references missing channel {app.channel_id}")
            return self._failure(push_id, ErrorCode.CHANNEL_NOT_FOUND)
        if not recipients:
            log.info(f"push {push_id}: app {app.id} has no bound recipients")
            return self._failure(push_id, ErrorCode.NO_RECIPIENTS)

        targets = select_targets(app, recipients)
        results = list(await asyncio.gather(*(self._deliver(app, channel, r.open_id, msg) for r in targets)))

        succeeded = sum(1 for r in results if r.success)
        outcome = PushResult(
            push_id=push_id,
            total=len(targets),
            success=succeeded,
            failed=len(targets) - succeeded,
            results=results,
        )
        log.info(f"push {push_id}: app={app.id} mode={app.push_mode.value} total={outcome.total} success={outcome.success}")

        record = Message(
            id=push_id,
            direction=Direction.OUTBOUND,
            type="push",
            channel_id=channel.id,
            app_id=app.id,
            title=msg.title,
            desp=msg.desp,
            results=results,
            created_at=created_at,
        )
        try:
            await self.messages.save_message(record)
        except Exception:
            log.exception(f"push {push_id}: failed to persist history")
        return outcome

    async def _deliver(self, app: App, channel: Channel, open_id: str, msg: PushMessageInput) -> DeliveryResult:
        try:
            match app.message_type:
                case MessageType.TEMPLATE:
                    sent = await self.delivery.send_template_message(channel, open_id, app.template_id, template_data(msg))
                case MessageType.NORMAL:
                    sent = await self.delivery.send_custom_message(channel, open_id, text_content(msg))
                case _:
                    raise ValueError(f"Unsupported message type: {app.message_type}")
            return DeliveryResult(open_id=open_id, success=sent.success, msg_id=sent.msg_id, error=sent.error)
        except Exception as e:
            log.exception(f"delivery to {open_id} raised")
            return DeliveryResult(open_id=open_id, success=False, error=str(e) or "Unknown error")
