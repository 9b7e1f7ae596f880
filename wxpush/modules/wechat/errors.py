"""WeChat official-account API error codes."""

WECHAT_ERROR_MESSAGES: dict[int, str] = {
    -1: "WeChat system busy, retry later",
    40001: "Invalid AppSecret or access token",
    40002: "Invalid grant type",
    40003: "Invalid OpenID",
    40013: "Invalid AppID",
    40037: "Invalid template ID",
    40125: "Invalid AppSecret",
    40164: "Caller IP is not in the API whitelist",
    41001: "Missing access token",
    41002: "Missing AppID",
    41003: "Missing AppSecret",
    42001: "Access token expired",
    42002: "Refresh token expired",
    43001: "GET request required",
    43002: "POST request required",
    43004: "Recipient has not followed the official account",
    44001: "Empty media file",
    45015: "Reply window expired; user has not interacted within 48 hours",
    45047: "Customer-service message quota exceeded",
    48001: "API unauthorized; check the official account's permissions",
    50001: "User has not authorized this API",
    61023: "Invalid refresh token",
}

# Codes that mean the cached token is no longer usable
TOKEN_INVALID_CODES = frozenset({40001, 42001})

def get_wechat_error_message(errcode: int) -> str:
    return WECHAT_ERROR_MESSAGES.get(errcode, f"WeChat API error: {errcode}")
