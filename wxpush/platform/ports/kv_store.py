from typing import Any, Protocol, runtime_checkable

@runtime_checkable
class KVStorePort(Protocol):
    """JSON-valued key-value store: no transactions, no secondary indexes, prefix listing only."""

    async def get(self, key: str) -> Any | None: ...

    async def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list(self, prefix: str) -> list[str]: ...
