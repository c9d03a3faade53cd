"""Pagination stage."""

import math
from dataclasses import dataclass
from typing import List, Sequence

from ..core.errors import InvalidPageSize
from .records import Record


@dataclass(frozen=True)
class PaginationState:
    page: int = 1
    page_size: int = 25


@dataclass(frozen=True)
class PageSlice:
    rows: List[Record]
    page: int
    total_pages: int
    total: int
    # 1-based "showing start-end of total" bounds, 0-0 when empty
    start: int
    end: int


def total_pages(count: int, page_size: int) -> int:
    if page_size < 1:
        raise InvalidPageSize(page_size)
    return max(1, math.ceil(count / page_size))


def clamp_page(page: int, count: int, page_size: int) -> int:
    return min(max(1, page), total_pages(count, page_size))


def paginate(records: Sequence[Record], state: PaginationState) -> PageSlice:
    """Slice ``records`` for ``state``, clamping the page into range first."""
    count = len(records)
    page = clamp_page(state.page, count, state.page_size)
    lo = min((page - 1) * state.page_size, count)
    hi = min(page * state.page_size, count)
    return PageSlice(
        rows=list(records[lo:hi]),
        page=page,
        total_pages=total_pages(count, state.page_size),
        total=count,
        start=lo + 1 if hi > lo else 0,
        end=hi,
    )
