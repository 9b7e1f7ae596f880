import httpx
from wxpush.core.config import settings
from wxpush.core.redis import redis_manager
from wxpush.platform.ports.kv_store import KVStorePort
from wxpush.platform.adapters.kv_memory import InMemoryKVStore
from wxpush.platform.adapters.kv_redis import RedisKVStore
from wxpush.modules.wechat.token_service import TokenMemoryCache

class ProviderRegistry:
    """Process-wide singletons, built lazily from settings; tests swap them with configure()."""

    _kv_store: KVStorePort | None = None
    _http_client: httpx.AsyncClient | None = None
    _token_cache: TokenMemoryCache | None = None

    @classmethod
    def kv_store(cls) -> KVStorePort:
        if cls._kv_store is None:
            if settings.KV_PROVIDER == "redis":
                if redis_manager.redis is None:
                    raise RuntimeError("Redis not connected; call redis_manager.connect() on startup")
                cls._kv_store = RedisKVStore(redis_manager.redis, namespace=settings.KV_NAMESPACE)
            else:
                cls._kv_store = InMemoryKVStore()
        return cls._kv_store

    @classmethod
    def http_client(cls) -> httpx.AsyncClient:
        if cls._http_client is None:
            cls._http_client = httpx.AsyncClient(
                timeout=settings.WECHAT_HTTP_TIMEOUT,
                headers={"Content-Type": "application/json; charset=utf-8"},
            )
        return cls._http_client

    @classmethod
    def token_cache(cls) -> TokenMemoryCache:
        if cls._token_cache is None:
            cls._token_cache = TokenMemoryCache()
        return cls._token_cache

    @classmethod
    def configure(cls, *, kv_store: KVStorePort | None = None, http_client: httpx.AsyncClient | None = None,
                  token_cache: TokenMemoryCache | None = None):
        if kv_store is not None:
            cls._kv_store = kv_store
        if http_client is not None:
            cls._http_client = http_client
        if token_cache is not None:
            cls._token_cache = token_cache

    @classmethod
    async def aclose(cls):
        if cls._http_client is not None:
            await cls._http_client.aclose()
        cls.reset()

    @classmethod
    def reset(cls):
        cls._kv_store = None
        cls._http_client = None
        cls._token_cache = None

registry = ProviderRegistry()
