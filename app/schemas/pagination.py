from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """List envelope returned when a listing is called with include_pagination=true."""
    items: list[T]
    pagination: PaginationMeta


def page_of(items: list, *, total: int, limit: int, offset: int, include_pagination: bool):
    """Bare list by default; the envelope only when the caller asked for it."""
    if not include_pagination:
        return items
    return PaginatedResponse(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(items) < total,
        ),
    )
