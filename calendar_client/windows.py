"""
windows.py
----------
Calendar view -> query window.

- month:  first day 00:00 .. last day end of day
- week:   Monday 00:00 .. Sunday end of day
- day:    the anchor day
- agenda: today .. today + 30 days (the anchor is ignored)
"""

import calendar
from datetime import date, datetime, time, timedelta

MONTH = "month"
WEEK = "week"
DAY = "day"
AGENDA = "agenda"

VIEWS = (MONTH, WEEK, DAY, AGENDA)
AGENDA_DAYS = 30


def _start_of(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _end_of(d: date) -> datetime:
    return datetime.combine(d, time.max)


def week_start(d: date) -> date:
    """Monday of the week containing d."""
    return d - timedelta(days=d.weekday())


def window_for(view: str, anchor: date, today: date | None = None):
    """Return (window_from, window_to) for a calendar view around anchor."""
    if isinstance(anchor, datetime):
        anchor = anchor.date()

    if view == MONTH:
        _, last_day = calendar.monthrange(anchor.year, anchor.month)
        return _start_of(anchor.replace(day=1)), _end_of(anchor.replace(day=last_day))
    if view == WEEK:
        first = week_start(anchor)
        return _start_of(first), _end_of(first + timedelta(days=6))
    if view == DAY:
        return _start_of(anchor), _end_of(anchor)
    if view == AGENDA:
        first = today or date.today()
        return _start_of(first), _end_of(first + timedelta(days=AGENDA_DAYS))
    raise ValueError(f"Unknown calendar view '{view}'. Expected one of {', '.join(VIEWS)}.")
