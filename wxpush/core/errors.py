from enum import IntEnum
from typing import Any

class ErrorCode(IntEnum):
    SUCCESS = 0

    # 400xx validation
    MISSING_TITLE = 40001
    INVALID_PARAM = 40002
    INVALID_CONFIG = 40003

    # 401xx auth
    INVALID_TOKEN = 40101
    TOKEN_REQUIRED = 40102
    FORBIDDEN = 40301

    # 404xx not found
    KEY_NOT_FOUND = 40401
    MESSAGE_NOT_FOUND = 40402
    NO_RECIPIENTS = 40403
    CHANNEL_NOT_FOUND = 40404

    # 429xx
    RATE_LIMIT_EXCEEDED = 42901

    # 500xx
    INTERNAL_ERROR = 50001
    WECHAT_API_ERROR = 50002

ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.SUCCESS: "success",
    ErrorCode.MISSING_TITLE: "Message title is required",
    ErrorCode.INVALID_PARAM: "Invalid parameter",
    ErrorCode.INVALID_CONFIG: "Invalid configuration",
    ErrorCode.INVALID_TOKEN: "Invalid admin token",
    ErrorCode.TOKEN_REQUIRED: "Admin token is required",
    ErrorCode.FORBIDDEN: "Insufficient scopes",
    ErrorCode.KEY_NOT_FOUND: "App not found",
    ErrorCode.MESSAGE_NOT_FOUND: "Message not found",
    ErrorCode.NO_RECIPIENTS: "No recipients bound",
    ErrorCode.CHANNEL_NOT_FOUND: "Channel not found",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Rate limit exceeded",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
    ErrorCode.WECHAT_API_ERROR: "WeChat API error",
}

def http_status_for(code: int) -> int:
    """Map an error code onto its HTTP status band."""
    if code == ErrorCode.SUCCESS:
        return 200
    if code == ErrorCode.INVALID_CONFIG:
        return 500
    band = code // 100
    if band in (400, 401, 403, 404, 429, 500):
        return band
    return 500

class ApiError(Exception):
    def __init__(self, code: ErrorCode, message: str | None = None, status_code: int | None = None):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "Unknown error")
        self.status_code = status_code or http_status_for(code)
        super().__init__(self.message)

    @classmethod
    def bad_request(cls, message: str):
        return cls(ErrorCode.INVALID_PARAM, message)

    @classmethod
    def not_found(cls, code: ErrorCode = ErrorCode.MESSAGE_NOT_FOUND, message: str | None = None):
        return cls(code, message)

def success_body(data: Any = None, message: str = "success") -> dict:
    return {"code": int(ErrorCode.SUCCESS), "message": message, "data": data}

def error_body(code: int, message: str | None = None) -> dict:
    try:
        default = ERROR_MESSAGES.get(ErrorCode(code), "Unknown error")
    except ValueError:
        default = "Unknown error"
    return {"code": int(code), "message": message or default, "data": None}
