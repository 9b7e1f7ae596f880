from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    APP_NAME: str = "wxpush"
    ENV: Literal["local", "dev", "prod"] = "local"
    API_PREFIX: str = "/api/v1"

    # Key-value store
    KV_PROVIDER: Literal["memory", "redis"] = "memory"
    REDIS_URL: str | None = None
    KV_NAMESPACE: str = ""  # optional key prefix, e.g. "wxpush:"

    # Admin auth (HS256 bearer tokens)
    JWT_ALG: str = "HS256"
    JWT_SECRET: str = "dev-secret-change-me"
    REQUIRED_AUDIENCE: str | None = None

    # WeChat official account API
    WECHAT_API_BASE: str = "https://api.weixin.qq.com"
    WECHAT_HTTP_TIMEOUT: float = 10.0
    TOKEN_EXPIRY_MARGIN_SECONDS: int = 300
    ACCESS_TOKEN_KV_TTL: int = 7000
    TOKEN_STATUS_TTL: int = 86400

    # Message history
    MESSAGE_LIST_CAP: int = 10000
    CHANNEL_LIST_CAP: int = 5000
    APP_LIST_CAP: int = 5000
    OPENID_LIST_CAP: int = 1000
    SCAN_BATCH_SIZE: int = 50
    RETENTION_DAYS: int = 30

    # Webhook gate, per app key; 0 disables
    RATE_LIMIT_PER_MINUTE: int = 0

    @field_validator("MESSAGE_LIST_CAP", "CHANNEL_LIST_CAP", "APP_LIST_CAP", "OPENID_LIST_CAP", "SCAN_BATCH_SIZE")
    @classmethod
    def _must_be_positive(cls, v: int):
        if v < 1:
            raise ValueError("list caps and batch sizes must be >= 1")
        return v

    @model_validator(mode="after")
    def _redis_needs_url(self):
        if self.KV_PROVIDER == "redis" and not self.REDIS_URL:
            raise ValueError("KV_PROVIDER=redis requires REDIS_URL")
        return self

settings = Settings()
