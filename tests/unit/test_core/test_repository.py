"""Tests for the paging properties of SearchResult."""

from __future__ import annotations

import pytest

from notification_service.core.database import SearchResult


@pytest.mark.unit
@pytest.mark.parametrize(
    ("total", "limit", "offset", "count", "pages", "has_next", "has_prev"),
    [
        (0, 20, 0, 0, 0, False, False),
        (5, 2, 0, 2, 3, True, False),
        (5, 2, 2, 2, 3, True, True),
        (5, 2, 4, 1, 3, False, True),
        (4, 2, 2, 2, 2, False, True),
    ],
)
def test_paging(total, limit, offset, count, pages, has_next, has_prev):
    result = SearchResult(items=[object()] * count, total=total, limit=limit, offset=offset)

    assert result.pages == pages
    assert result.has_next is has_next
    assert result.has_prev is has_prev
