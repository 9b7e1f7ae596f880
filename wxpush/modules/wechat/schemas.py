from wxpush.core.base import Record

class CachedToken(Record):
    access_token: str
    expires_at: int  # epoch ms

class TokenStatus(Record):
    valid: bool
    last_refresh_at: int
    last_refresh_success: bool
    expires_at: int | None = None
    error: str | None = None
    error_code: int | None = None

class SendResult(Record):
    success: bool
    msg_id: str | None = None
    error: str | None = None
    error_code: int | None = None
