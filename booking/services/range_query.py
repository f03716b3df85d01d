"""
range_query.py
--------------
Lists the bookings visible in a calendar window.

A booking is in the window [from, to] when
- its interval intersects the window with the same half-open rule the
  ConflictDetector uses:  start < to AND effective_end_at > from, or
- it has no length (no end, or end == start) and from <= start <= to.

Either bound may be omitted. Results are ordered by start ascending, then id,
and paged; `total` counts every match regardless of the page.

The "current staff" filter is whatever the caller passes in BookingFilters;
the query keeps no state of its own between calls.
"""

import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import DatabaseError
from django.db.models import F, Q

from ..exceptions import BookingPersistenceError
from ..models import Booking

logger = logging.getLogger(__name__)


@dataclass
class BookingFilters:
    resource_owner_id: int | None = None
    staff: str | None = None
    keyword: str | None = None


@dataclass
class BookingPage:
    items: list = field(default_factory=list)
    total: int = 0


def window_q(window_from=None, window_to=None) -> Q:
    """Q expression for bookings that fall into [window_from, window_to]."""
    if window_from is None and window_to is None:
        return Q()

    intersects = Q()
    point = Q(end_time__isnull=True) | Q(end_time=F("start_time"))
    if window_to is not None:
        intersects &= Q(start_time__lt=window_to)
        point &= Q(start_time__lte=window_to)
    if window_from is not None:
        intersects &= Q(effective_end_at__gt=window_from)
        point &= Q(start_time__gte=window_from)
    return intersects | point


def keyword_q(keyword: str) -> Q:
    return (
        Q(title__icontains=keyword)
        | Q(content__icontains=keyword)
        | Q(staff__icontains=keyword)
        | Q(method__icontains=keyword)
        | Q(location__icontains=keyword)
        | Q(customer__name__icontains=keyword)
    )


class BookingRangeQuery:
    def __init__(self, default_page_size=None, max_page_size=None):
        self.default_page_size = default_page_size or getattr(settings, "BOOKING_PAGE_SIZE", 20)
        self.max_page_size = max_page_size or getattr(settings, "BOOKING_MAX_PAGE_SIZE", 500)

    def clamp_paging(self, page, page_size):
        page = page if page and page > 0 else 1
        if not page_size or page_size < 1:
            page_size = self.default_page_size
        return page, min(page_size, self.max_page_size)

    def queryset(self, window_from=None, window_to=None, filters: BookingFilters | None = None):
        filters = filters or BookingFilters()
        qs = (
            Booking.objects.with_effective_end()
            .select_related("customer")
            .filter(window_q(window_from, window_to))
        )

        if filters.resource_owner_id is not None:
            qs = qs.filter(customer_id=filters.resource_owner_id)

        staff = (filters.staff or "").strip()
        if staff:
            qs = qs.filter(staff__icontains=staff)

        keyword = (filters.keyword or "").strip()
        if keyword:
            qs = qs.filter(keyword_q(keyword))

        return qs.order_by("start_time", "id")

    def list(self, window_from=None, window_to=None, filters=None, page=1, page_size=None) -> BookingPage:
        page, page_size = self.clamp_paging(page, page_size)
        qs = self.queryset(window_from, window_to, filters)
        offset = (page - 1) * page_size
        try:
            total = qs.count()
            items = list(qs[offset:offset + page_size])
        except DatabaseError as exc:
            logger.exception("Range query failed (%s .. %s)", window_from, window_to)
            raise BookingPersistenceError("Booking store is unavailable.") from exc
        return BookingPage(items=items, total=total)
