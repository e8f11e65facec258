# Overview: Season-based payment terms for reservations.

"""
Season Calculator

The deposit of a reservation falls due a number of months after the
reservation is created, depending on the season of the creation month:

    summer  (Jun, Jul, Aug)  +4 months
    autumn  (Sep, Oct, Nov)  +5 months
    winter  (Dec, Jan, Feb)  +8 months
    spring  (Mar, Apr, May)  +6 months

Month arithmetic uses dateutil's relativedelta, which clamps to the last
day of the target month (Oct 31 + 4 months -> Feb 28/29).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from dateutil.relativedelta import relativedelta


@dataclass(frozen=True)
class Season:
    key: str
    name: str
    months: tuple[int, ...]
    duration_months: int


SEASONS = (
    Season("summer", "Été", (6, 7, 8), 4),
    Season("autumn", "Automne", (9, 10, 11), 5),
    Season("winter", "Hiver", (12, 1, 2), 8),
    Season("spring", "Printemps", (3, 4, 5), 6),
)

DEFAULT_DURATION_MONTHS = 6


def season_for(d: date | datetime) -> Season:
    for season in SEASONS:
        if d.month in season.months:
            return season
    raise ValueError(f"Invalid month: {d.month}")


def duration_months_for(d: date | datetime) -> int:
    try:
        return season_for(d).duration_months
    except ValueError:
        return DEFAULT_DURATION_MONTHS


def due_date_for(created: date | datetime) -> date:
    """Payment due date of a reservation created on `created`."""
    if isinstance(created, datetime):
        created = created.date()
    return created + relativedelta(months=duration_months_for(created))


def season_table() -> list[dict]:
    return [
        {
            "key": s.key,
            "name": s.name,
            "months": list(s.months),
            "duration_months": s.duration_months,
        }
        for s in SEASONS
    ]
