from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from insight_engine.errors import InvalidRequest

from .values import json_safe

Rows = List[Dict[str, Any]]

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 5_000


@dataclass(slots=True)
class Page:
    rows: Rows
    total_rows: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_rows == 0:
            return 0
        return (self.total_rows + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def unique_columns(columns: Sequence[str]) -> List[str]:
    """Suffix repeated column names (``id``, ``id_2``) so no cell is lost when rows become dicts."""
    seen: Dict[str, int] = {}
    result: List[str] = []
    for column in columns:
        name = str(column)
        if name in seen:
            seen[name] += 1
            candidate = f"{name}_{seen[name]}"
            while candidate in seen:
                seen[name] += 1
                candidate = f"{name}_{seen[name]}"
            seen[candidate] = 1
            result.append(candidate)
        else:
            seen[name] = 1
            result.append(name)
    return result


def shape_rows(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> Rows:
    """Turn driver tuples into JSON-safe dicts, keeping row and column order."""
    names = unique_columns(columns)
    return [
        {name: json_safe(value) for name, value in zip(names, row)}
        for row in rows
    ]


def limit_rows(rows: Rows, limit: Optional[int]) -> Rows:
    if limit is None:
        return rows
    if limit < 0:
        raise InvalidRequest("limit must be zero or positive.")
    return rows[:limit]


def paginate(
    rows: Rows,
    page: int = 1,
    page_size: Optional[int] = None,
    *,
    max_page_size: int = MAX_PAGE_SIZE,
) -> Page:
    """Slice a 1-based page out of ``rows``; ``page_size`` is capped at ``max_page_size``."""
    if page < 1:
        raise InvalidRequest("page must be 1 or greater.")
    size = DEFAULT_PAGE_SIZE if page_size is None else page_size
    if size < 1:
        raise InvalidRequest("pageSize must be 1 or greater.")
    size = min(size, max_page_size)
    start = (page - 1) * size
    return Page(
        rows=rows[start : start + size],
        total_rows=len(rows),
        page=page,
        page_size=size,
    )
