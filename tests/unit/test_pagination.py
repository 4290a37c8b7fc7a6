from datetime import date, datetime
from decimal import Decimal

import pytest

from insight_engine.errors import InvalidRequest
from insight_engine.query import apply_limit, limit_rows, paginate, shape_rows, unique_columns


def _rows(count: int):
    return [{"n": index} for index in range(count)]


def test_paginate_returns_requested_slice():
    page = paginate(_rows(120), page=2, page_size=50)

    assert [row["n"] for row in page.rows] == list(range(50, 100))
    assert page.total_rows == 120
    assert page.total_pages == 3
    assert page.has_next


def test_paginate_last_page_is_partial():
    page = paginate(_rows(120), page=3, page_size=50)

    assert len(page.rows) == 20
    assert not page.has_next


def test_paginate_caps_page_size():
    page = paginate(_rows(30), page=1, page_size=1_000, max_page_size=10)

    assert page.page_size == 10
    assert len(page.rows) == 10


@pytest.mark.parametrize("page, page_size", [(0, 10), (1, 0)])
def test_paginate_rejects_invalid_values(page, page_size):
    with pytest.raises(InvalidRequest):
        paginate(_rows(5), page=page, page_size=page_size)


def test_limit_rows():
    assert limit_rows(_rows(5), 2) == [{"n": 0}, {"n": 1}]
    assert limit_rows(_rows(5), None) == _rows(5)
    with pytest.raises(InvalidRequest):
        limit_rows(_rows(5), -1)


def test_shape_rows_converts_cells_and_keeps_order():
    rows = shape_rows(
        ["id", "amount", "day", "at", "raw", "id"],
        [(1, Decimal("2.50"), date(2024, 1, 2), datetime(2024, 1, 2, 3, 4, 5), b"abc", 7)],
    )

    assert rows == [
        {
            "id": 1,
            "amount": 2.5,
            "day": "2024-01-02",
            "at": "2024-01-02T03:04:05",
            "raw": "abc",
            "id_2": 7,
        }
    ]
    assert list(rows[0].keys()) == ["id", "amount", "day", "at", "raw", "id_2"]


def test_unique_columns_skips_taken_suffixes():
    assert unique_columns(["a", "a_2", "a"]) == ["a", "a_2", "a_3"]


def test_apply_limit_appends_limit_once():
    assert apply_limit("SELECT 1;", 10) == "SELECT 1\nLIMIT 10;"
    assert apply_limit("SELECT 1 LIMIT 5", 10) == "SELECT 1 LIMIT 5"
    assert apply_limit("SELECT 1", None) == "SELECT 1"
    assert apply_limit("SELECT 1", 0) == "SELECT 1\nLIMIT 0"
