import secrets
from enum import Enum
from pydantic import Field, model_validator
from wxpush.core.base import TimestampedRecord

APP_KEY_PREFIX = "APK"

def generate_app_key() -> str:
    return APP_KEY_PREFIX + secrets.token_hex(16)

class PushMode(str, Enum):
    SINGLE = "single"          # first bound recipient only
    SUBSCRIBE = "subscribe"    # every bound recipient

class MessageType(str, Enum):
    NORMAL = "normal"          # custom (customer-service) text message
    TEMPLATE = "template"

class App(TimestampedRecord):
    key: str = Field(default_factory=generate_app_key)
    name: str
    channel_id: str
    push_mode: PushMode = PushMode.SINGLE
    message_type: MessageType = MessageType.NORMAL
    template_id: str | None = None

    @model_validator(mode="after")
    def _template_id_iff_template(self):
        if self.message_type is MessageType.TEMPLATE and not self.template_id:
            raise ValueError("templateId is required when messageType is template")
        if self.message_type is MessageType.NORMAL and self.template_id:
            raise ValueError("templateId is only allowed when messageType is template")
        return self

class Recipient(TimestampedRecord):
    """An OpenID bound to an App."""
    app_id: str
    open_id: str
    nickname: str | None = None
    remark: str | None = None
