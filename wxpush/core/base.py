import time
import uuid
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def now_ms() -> int:
    return int(time.time() * 1000)

def new_id() -> str:
    return uuid.uuid4().hex

class Record(BaseModel):
    """KV-stored record; serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_store(cls, data: dict | None):
        if data is None:
            return None
        return cls.model_validate(data)

class TimestampedRecord(Record):
    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

def as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
