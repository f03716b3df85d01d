"""
slot_utils.py
-------------
Helpers to turn query-string values into naive local window bounds.

Accepted formats:
- full timestamps: 'YYYY-MM-DDTHH:MM[:SS[.ffffff]]' (a space also works)
- bare dates: 'YYYY-MM-DD' -> start of day for 'from', end of day for 'to'

Timestamps that carry an offset are converted to local time and made
naive, since the booking store only holds naive local times.
"""

from datetime import datetime, time

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


class WindowParseError(ValueError):
    pass


def to_local_naive(value: datetime) -> datetime:
    """Aware -> naive local time (TIME_ZONE). Naive values pass through."""
    if timezone.is_aware(value):
        return timezone.make_naive(value, timezone.get_current_timezone())
    return value


def parse_window_bound(raw, end_of_day: bool = False):
    """
    Parse one window bound. Empty input returns None (unbounded).

    Raises:
        WindowParseError: the value is neither a date nor a timestamp.
    """
    raw = (raw or "").strip()
    if not raw:
        return None

    # Bare dates first: parse_datetime also accepts 'YYYY-MM-DD' (as midnight).
    try:
        d = parse_date(raw)
    except ValueError:
        d = None
    if d is not None:
        return datetime.combine(d, time.max if end_of_day else time.min)

    try:
        dt = parse_datetime(raw)
    except ValueError:
        dt = None
    if dt is not None:
        return to_local_naive(dt)

    raise WindowParseError(f"Invalid date/time '{raw}'. Use YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS.")


def parse_window(raw_from, raw_to):
    """
    Parse a [from, to] pair. Either side may be missing.

    Raises:
        WindowParseError: bad format, or from is after to.
    """
    window_from = parse_window_bound(raw_from)
    window_to = parse_window_bound(raw_to, end_of_day=True)
    if window_from is not None and window_to is not None and window_from > window_to:
        raise WindowParseError("'from' must not be after 'to'.")
    return window_from, window_to
