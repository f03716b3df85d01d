"""
conflict_detector.py
--------------------
Finds an existing booking that overlaps a candidate (staff, start, end).

Rules:
- Blank staff never conflicts (conflict enforcement is opt-in per booking).
- An open booking (no end) is the point [start, start).
- Overlap is strict half-open:
      existing_start < new_end AND new_start < existing_end
  so a booking ending exactly when another begins is not a conflict.
- When several bookings overlap, the one with the earliest start wins
  (then the lowest id), so error messages are stable.

The detector is read-only. BookingManager calls it inside the transaction
that holds the staff lock; Booking.clean() calls it for admin form errors.
"""

from ..models import Booking


def normalize_staff(staff) -> str:
    return (staff or "").strip()


class ConflictDetector:
    def find_conflict(self, staff, start, end=None, exclude_id=None):
        """
        Return the earliest overlapping Booking for this staff, or None.

        Args:
            staff: free-text staff key; blank means "no enforcement"
            start: candidate start (required)
            end: candidate end; defaults to start
            exclude_id: booking id to ignore (the booking being updated)
        """
        staff = normalize_staff(staff)
        if not staff:
            return None

        new_start = start
        new_end = end if end is not None else start

        qs = (
            Booking.objects.for_staff(staff)
            .with_effective_end()
            .filter(start_time__lt=new_end, effective_end_at__gt=new_start)
        )
        if exclude_id is not None:
            qs = qs.exclude(pk=exclude_id)

        return qs.select_related("customer").order_by("start_time", "id").first()

    def has_conflict(self, staff, start, end=None, exclude_id=None) -> bool:
        return self.find_conflict(staff, start, end, exclude_id) is not None
