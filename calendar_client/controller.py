"""
controller.py
-------------
Client-side calendar state: a cache of the bookings in the visible window
and the optimistic edit protocol for drag/resize.

Edit lifecycle:
    IDLE -> (gesture released) -> PENDING -> COMMITTED | REJECTED -> IDLE
- A gesture only previews. cancel() sends nothing and changes nothing.
- On release the move is pre-checked against the cached window (advisory
  only, it can miss bookings outside the window or written by others).
  A local hit refuses the move without a round trip.
- Otherwise the cache takes the new times at once (PENDING) and the whole
  booking is PUT to the server, which re-checks authoritatively.
- Server accepts: COMMITTED, cache keeps the server's canonical copy.
- Server rejects (409/400/404/5xx): REJECTED, cache goes back to the
  pre-drag values and the notifier gets a message.
- No response at all: UNKNOWN. The window is marked stale and is fetched
  again on the next render; the change is neither assumed saved nor lost.

The cache is never authoritative and is rebuilt on every window fetch.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .api import (
    ApiConflictError,
    ApiError,
    ApiNotFoundError,
    ApiServerError,
    ApiUnavailableError,
    ApiValidationError,
    BookingApiClient,
)
from .models import CalendarBooking, intervals_overlap
from .windows import window_for

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "The change could not be saved. Please try again."
UNKNOWN_MESSAGE = "No response from the server; reloading the calendar."


class EditState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


@dataclass
class EditResult:
    state: EditState
    booking: Optional[CalendarBooking] = None
    message: str = ""
    conflict: Optional[CalendarBooking] = None
    sent: bool = False

    @property
    def ok(self) -> bool:
        return self.state == EditState.COMMITTED


def conflict_message(staff: str, conflict: CalendarBooking) -> str:
    return (
        f"Time conflict: {staff} already has booking #{conflict.id} "
        f"at {conflict.start:%Y-%m-%d %H:%M}."
    )


def _log_notify(level: str, message: str) -> None:
    logger.log(logging.ERROR if level == "error" else logging.INFO, message)


class Gesture:
    """
    A drag or resize in progress on one booking.
    Nothing is mutated or sent until release().
    """

    DRAG = "drag"
    RESIZE = "resize"

    def __init__(self, controller: "CalendarController", booking: CalendarBooking, kind: str):
        self.controller = controller
        self.booking = booking
        self.kind = kind
        self.start = booking.start
        self.end = booking.end
        self.finished = False

    def _ensure_open(self):
        if self.finished:
            raise RuntimeError("Gesture already released or cancelled.")

    def move_to(self, start: datetime) -> None:
        """Drag: shift the booking, keeping its duration."""
        self._ensure_open()
        if self.booking.end is not None:
            self.end = start + (self.booking.end - self.booking.start)
        self.start = start

    def resize_to(self, end: datetime) -> None:
        """Resize: change the end, keeping the start."""
        self._ensure_open()
        self.end = end

    @property
    def changed(self) -> bool:
        return (self.start, self.end) != (self.booking.start, self.booking.end)

    def cancel(self) -> None:
        self._ensure_open()
        self.finished = True

    def release(self) -> EditResult:
        self._ensure_open()
        self.finished = True
        if not self.changed:
            return EditResult(EditState.IDLE, self.controller.get(self.booking.id))
        return self.controller.reschedule(self.booking.id, self.start, self.end)


class CalendarController:
    def __init__(
        self,
        api: BookingApiClient,
        *,
        staff: Optional[str] = None,
        keyword: Optional[str] = None,
        resource_owner_id: Optional[int] = None,
        page_size: int = 500,
        precheck: bool = True,
        notify: Optional[Callable[[str, str], None]] = None,
    ):
        self.api = api
        # Explicit filter config; the caller owns any "current staff" default.
        self.staff = staff
        self.keyword = keyword
        self.resource_owner_id = resource_owner_id
        self.page_size = page_size
        self.precheck = precheck
        self.notify = notify or _log_notify

        self.state = EditState.IDLE
        self.window_from: Optional[datetime] = None
        self.window_to: Optional[datetime] = None
        self.stale = False
        self._cache: dict[int, CalendarBooking] = {}

    # -------------------- window --------------------
    def load(self, window_from: datetime, window_to: datetime) -> list[CalendarBooking]:
        """Fetch every booking in the window and rebuild the cache."""
        items: list[CalendarBooking] = []
        page = 1
        while True:
            result = self.api.list_bookings(
                window_from,
                window_to,
                staff=self.staff,
                keyword=self.keyword,
                resource_owner_id=self.resource_owner_id,
                page=page,
                page_size=self.page_size,
            )
            items.extend(result.items)
            if not result.items or len(items) >= result.total:
                break
            page += 1

        self.window_from, self.window_to = window_from, window_to
        self._cache = {b.id: b for b in items}
        self.stale = False
        logger.debug("Loaded %d bookings for %s .. %s", len(items), window_from, window_to)
        return self.bookings

    def show(self, view: str, anchor, today=None) -> list[CalendarBooking]:
        """Load the window of a month/week/day/agenda view."""
        return self.load(*window_for(view, anchor, today=today))

    def refresh(self) -> list[CalendarBooking]:
        if self.window_from is None or self.window_to is None:
            raise RuntimeError("No window loaded yet.")
        return self.load(self.window_from, self.window_to)

    def visible_bookings(self) -> list[CalendarBooking]:
        """What to render now; re-fetches first if an earlier outcome is unknown."""
        if self.stale:
            return self.refresh()
        return self.bookings

    @property
    def bookings(self) -> list[CalendarBooking]:
        return sorted(self._cache.values(), key=lambda b: (b.start, b.id))

    def get(self, booking_id: int) -> Optional[CalendarBooking]:
        return self._cache.get(booking_id)

    def bookings_by_day(self) -> dict:
        """Start date -> bookings, for month cells and agenda grouping."""
        days = defaultdict(list)
        for b in self.bookings:
            days[b.start.date()].append(b)
        return dict(days)

    def _in_window(self, booking: CalendarBooking) -> bool:
        if self.window_from is None or self.window_to is None:
            return False
        if booking.effective_end == booking.start:
            return self.window_from <= booking.start <= self.window_to
        return booking.start < self.window_to and booking.effective_end > self.window_from

    # -------------------- local pre-check --------------------
    def find_local_conflict(self, staff, start, end=None, exclude_id=None) -> Optional[CalendarBooking]:
        """Same rule as the server, against the cached window only."""
        staff = (staff or "").strip()
        if not staff:
            return None
        hits = [
            b for b in self._cache.values()
            if b.id != exclude_id
            and b.staff.strip() == staff
            and intervals_overlap(start, end, b.start, b.end)
        ]
        return min(hits, key=lambda b: (b.start, b.id)) if hits else None

    # -------------------- gestures --------------------
    def _gesture(self, booking_id: int, kind: str) -> Gesture:
        booking = self._cache.get(booking_id)
        if booking is None:
            raise KeyError(f"Booking #{booking_id} is not in the current window.")
        return Gesture(self, booking, kind)

    def begin_drag(self, booking_id: int) -> Gesture:
        return self._gesture(booking_id, Gesture.DRAG)

    def begin_resize(self, booking_id: int) -> Gesture:
        return self._gesture(booking_id, Gesture.RESIZE)

    # -------------------- edits --------------------
    def reschedule(self, booking_id: int, start: datetime, end: Optional[datetime]) -> EditResult:
        """Move/resize a cached booking to new times."""
        original = self._cache.get(booking_id)
        if original is None:
            message = f"Booking #{booking_id} is not in the current window."
            self.notify("error", message)
            return EditResult(EditState.REJECTED, None, message)
        return self._apply_edit(original.with_times(start, end), original)

    def save(self, booking: CalendarBooking) -> EditResult:
        """Save an edited booking (all fields) from the detail form."""
        original = self._cache.get(booking.id)
        if original is None:
            message = f"Booking #{booking.id} is not in the current window."
            self.notify("error", message)
            return EditResult(EditState.REJECTED, None, message)
        return self._apply_edit(booking, original)

    def _remember(self, booking: CalendarBooking) -> None:
        """Cache a server copy if it falls in the window, otherwise drop it."""
        if self._in_window(booking):
            self._cache[booking.id] = booking
        else:
            self._cache.pop(booking.id, None)

    def _revert(self, original: CalendarBooking, message: str, conflict=None) -> EditResult:
        self._cache[original.id] = original
        if conflict is not None:
            self._remember(conflict)
        self.notify("error", message)
        return EditResult(EditState.REJECTED, original, message, conflict, sent=True)

    def _apply_edit(self, proposed: CalendarBooking, original: CalendarBooking) -> EditResult:
        if self.precheck:
            conflict = self.find_local_conflict(
                proposed.staff, proposed.start, proposed.end, exclude_id=proposed.id
            )
            if conflict is not None:
                message = conflict_message(proposed.staff.strip(), conflict)
                self.notify("error", message)
                return EditResult(EditState.REJECTED, original, message, conflict)

        self._cache[proposed.id] = proposed
        self.state = EditState.PENDING
        try:
            saved = self.api.update_booking(proposed.id, proposed.to_payload())
        except ApiConflictError as e:
            return self._revert(original, e.message, e.conflict)
        except ApiNotFoundError as e:
            self.stale = True
            return self._revert(original, e.message)
        except ApiValidationError as e:
            return self._revert(original, e.message)
        except ApiServerError:
            return self._revert(original, RETRY_MESSAGE)
        except ApiUnavailableError:
            self.stale = True
            self.notify("warning", UNKNOWN_MESSAGE)
            return EditResult(EditState.UNKNOWN, proposed, UNKNOWN_MESSAGE, sent=True)
        except ApiError as e:
            return self._revert(original, e.message)
        finally:
            self.state = EditState.IDLE

        self._remember(saved)
        logger.info("Booking #%s moved to %s - %s", saved.id, saved.start, saved.end)
        return EditResult(EditState.COMMITTED, saved, sent=True)

    def create(self, payload: dict) -> EditResult:
        """
        Create a booking from the new-booking form. Not optimistic: the
        booking appears in the cache only once the server returns it.
        """
        staff = payload.get("staff")
        start = payload.get("start")
        if self.precheck and staff and isinstance(start, datetime):
            conflict = self.find_local_conflict(staff, start, payload.get("end"))
            if conflict is not None:
                message = conflict_message(staff.strip(), conflict)
                self.notify("error", message)
                return EditResult(EditState.REJECTED, None, message, conflict)

        body = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in payload.items()
        }
        try:
            created = self.api.create_booking(body)
        except ApiConflictError as e:
            if e.conflict is not None:
                self._remember(e.conflict)
            self.notify("error", e.message)
            return EditResult(EditState.REJECTED, None, e.message, e.conflict, sent=True)
        except ApiServerError:
            self.notify("error", RETRY_MESSAGE)
            return EditResult(EditState.REJECTED, None, RETRY_MESSAGE, sent=True)
        except ApiUnavailableError:
            self.stale = True
            self.notify("warning", UNKNOWN_MESSAGE)
            return EditResult(EditState.UNKNOWN, None, UNKNOWN_MESSAGE, sent=True)
        except ApiError as e:
            self.notify("error", e.message)
            return EditResult(EditState.REJECTED, None, e.message, sent=True)

        self._remember(created)
        return EditResult(EditState.COMMITTED, created, sent=True)

    def delete(self, booking_id: int) -> EditResult:
        try:
            self.api.delete_booking(booking_id)
        except ApiNotFoundError as e:
            self._cache.pop(booking_id, None)
            self.notify("error", e.message)
            return EditResult(EditState.REJECTED, None, e.message, sent=True)
        except ApiUnavailableError:
            self.stale = True
            self.notify("warning", UNKNOWN_MESSAGE)
            return EditResult(EditState.UNKNOWN, self.get(booking_id), UNKNOWN_MESSAGE, sent=True)
        except ApiServerError:
            self.notify("error", RETRY_MESSAGE)
            return EditResult(EditState.REJECTED, self.get(booking_id), RETRY_MESSAGE, sent=True)
        except ApiError as e:
            self.notify("error", e.message)
            return EditResult(EditState.REJECTED, self.get(booking_id), e.message, sent=True)

        removed = self._cache.pop(booking_id, None)
        return EditResult(EditState.COMMITTED, removed, sent=True)
