from datetime import datetime
from enum import Enum
from pydantic import Field
from wxpush.core.base import Record, new_id, utcnow

class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"

class DeliveryResult(Record):
    open_id: str
    success: bool
    msg_id: str | None = None
    error: str | None = None

class Message(Record):
    id: str = Field(default_factory=new_id)
    direction: Direction
    type: str
    channel_id: str | None = None
    app_id: str | None = None
    open_id: str | None = None
    title: str = ""
    desp: str | None = None
    content: str | None = None
    results: list[DeliveryResult] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

class MessageQuery(Record):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
    channel_id: str | None = None
    app_id: str | None = None
    open_id: str | None = None
    direction: Direction | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

class MessageListResult(Record):
    messages: list[Message]
    total: int
    page: int
    page_size: int

class MessageStats(Record):
    total: int = 0
    today: int = 0
    inbound: int = 0
    outbound: int = 0
    success: int = 0
    failed: int = 0
