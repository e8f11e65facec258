# Overview: Pytest coverage for season-based deposit due dates.

from datetime import date, datetime

import pytest

from frigo.services.season_service import (
    DEFAULT_DURATION_MONTHS,
    due_date_for,
    duration_months_for,
    season_for,
    season_table,
)


@pytest.mark.parametrize(
    "month,key,months",
    [
        (6, "summer", 4),
        (8, "summer", 4),
        (9, "autumn", 5),
        (11, "autumn", 5),
        (12, "winter", 8),
        (1, "winter", 8),
        (2, "winter", 8),
        (3, "spring", 6),
        (5, "spring", 6),
    ],
)
def test_season_for_month(month, key, months):
    d = date(2025, month, 10)
    assert season_for(d).key == key
    assert duration_months_for(d) == months


def test_due_date_adds_season_duration():
    assert due_date_for(date(2025, 6, 15)) == date(2025, 10, 15)
    assert due_date_for(date(2025, 10, 1)) == date(2026, 3, 1)
    assert due_date_for(date(2024, 12, 20)) == date(2025, 8, 20)


def test_due_date_clamps_to_month_end():
    # Jan 31 + 8 months has no Sep 31
    assert due_date_for(date(2025, 1, 31)) == date(2025, 9, 30)
    # Mar 31 + 6 months has no Sep 31
    assert due_date_for(date(2025, 3, 31)) == date(2025, 9, 30)


def test_due_date_accepts_datetime():
    assert due_date_for(datetime(2025, 7, 4, 23, 59)) == date(2025, 11, 4)


def test_season_table_covers_every_month():
    table = season_table()
    months = sorted(m for season in table for m in season["months"])
    assert months == list(range(1, 13))
    assert DEFAULT_DURATION_MONTHS == 6
