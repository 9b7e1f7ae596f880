from pydantic import Field
from wxpush.core.base import Record
from wxpush.core.errors import ErrorCode
from wxpush.modules.messages.schemas import DeliveryResult

class PushMessageInput(Record):
    title: str = Field(..., min_length=1)
    desp: str | None = None

class PushResult(Record):
    push_id: str
    total: int = 0
    success: int = 0
    failed: int = 0
    results: list[DeliveryResult] = Field(default_factory=list)
    error: str | None = None
    error_code: ErrorCode | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
