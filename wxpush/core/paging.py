from typing import Sequence, TypeVar

T = TypeVar("T")

def page_slice(items: Sequence[T], page: int, page_size: int) -> list[T]:
    """1-based page of `items`; pages past the end are empty."""
    start = (page - 1) * page_size
    return list(items[start:start + page_size])

def chunked(items: Sequence[T], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]
