from pydantic import Field
from wxpush.core.base import Record, TimestampedRecord

class ChannelConfig(Record):
    app_id: str = ""
    app_secret: str = ""
    msg_token: str | None = None  # callback signature token

class Channel(TimestampedRecord):
    name: str
    type: str = "wechat_mp"
    config: ChannelConfig = Field(default_factory=ChannelConfig)

    @property
    def has_credentials(self) -> bool:
        return bool(self.config.app_id and self.config.app_secret)

class ChannelVerifyResult(Record):
    valid: bool
    expires_in: int | None = None
    error: str | None = None
    error_code: int | None = None
