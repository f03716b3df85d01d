"""
booking_manager.py
------------------
Coordinates booking creation, update and deletion.

Guarantees:
- Every create/update re-runs the ConflictDetector at commit time, inside
  the same transaction that writes the row. The caller's view of the
  calendar may be stale, so nothing the caller checked beforehand counts.
- The read-check-write sequence is serialised per staff: the transaction
  first takes SELECT ... FOR UPDATE on the StaffLock row of the target
  staff. Writers for different staff never wait on each other.
- Updates lock the booking row first, so edits of one booking apply in the
  order the server receives them.
- Updates are full replacements: optional fields left out of the request
  are cleared. id and created_at never change.
- Delete is unconditional (freeing a slot cannot create a conflict).

Errors are raised as booking.exceptions.* and mapped to HTTP by the views.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import DatabaseError, transaction

from ..exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingPersistenceError,
    BookingValidationError,
)
from ..models import Booking, Customer, StaffLock
from .conflict_detector import ConflictDetector, normalize_staff

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "This field is required."


@dataclass
class BookingRequest:
    """
    Write payload for create/update. Every mutable field of a Booking;
    anything not supplied falls back to its empty value.
    """
    customer_id: int | None = None
    start: datetime | None = None
    end: datetime | None = None
    title: str = ""
    content: str = ""
    staff: str = ""
    method: str = ""
    location: str = ""
    status: str = ""

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingRequest":
        return cls(
            customer_id=booking.customer_id,
            start=booking.start_time,
            end=booking.end_time,
            title=booking.title,
            content=booking.content,
            staff=booking.staff,
            method=booking.method,
            location=booking.location,
            status=booking.status,
        )


def _clean_text(value) -> str:
    return (value or "").strip()


class BookingManager:
    def __init__(self, detector: ConflictDetector | None = None):
        self.detector = detector or ConflictDetector()

    # -------------------- validation --------------------
    def _validate(self, req: BookingRequest) -> Customer:
        errors = {}
        if req.customer_id is None:
            errors["resourceOwnerId"] = [REQUIRED_MESSAGE]
        if req.start is None:
            errors["start"] = [REQUIRED_MESSAGE]
        if req.start is not None and req.end is not None and req.end < req.start:
            errors["end"] = ["End cannot be earlier than start."]
        if errors:
            raise BookingValidationError("Booking request is invalid.", errors)

        try:
            customer = Customer.objects.filter(pk=req.customer_id).first()
        except DatabaseError as exc:
            logger.exception("Customer lookup failed for id=%s", req.customer_id)
            raise BookingPersistenceError("Booking store is unavailable.") from exc
        if customer is None:
            raise BookingValidationError(
                "Booking request is invalid.",
                {"resourceOwnerId": [f"Customer #{req.customer_id} does not exist."]},
            )
        return customer

    def _apply(self, booking: Booking, req: BookingRequest, customer: Customer) -> None:
        """Overwrite every mutable field (full replace, not a merge)."""
        booking.customer = customer
        booking.staff = normalize_staff(req.staff)
        booking.start_time = req.start
        booking.end_time = req.end
        booking.title = _clean_text(req.title)
        booking.content = _clean_text(req.content)
        booking.method = _clean_text(req.method)
        booking.location = _clean_text(req.location)
        booking.status = _clean_text(req.status)

    # -------------------- locking + commit --------------------
    def _lock_staff(self, staff: str) -> None:
        """
        Hold the per-staff lock until the surrounding transaction ends.
        Must be called inside transaction.atomic().
        """
        if not staff:
            return
        StaffLock.objects.select_for_update().get_or_create(staff=staff)

    def _check_and_save(self, booking: Booking) -> None:
        self._lock_staff(booking.staff)
        conflict = self.detector.find_conflict(
            staff=booking.staff,
            start=booking.start_time,
            end=booking.end_time,
            exclude_id=booking.pk,
        )
        if conflict is not None:
            raise BookingConflictError(booking.staff, conflict)
        booking.save()

    # -------------------- operations --------------------
    def get_booking(self, booking_id) -> Booking:
        try:
            booking = Booking.objects.select_related("customer").filter(pk=booking_id).first()
        except DatabaseError as exc:
            logger.exception("Failed to load booking #%s", booking_id)
            raise BookingPersistenceError("Booking store is unavailable.") from exc
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def create_booking(self, req: BookingRequest) -> Booking:
        """
        Create a booking after the authoritative overlap check.

        Raises:
            BookingValidationError: customer/start missing or invalid
            BookingConflictError: staff already busy in that interval
            BookingPersistenceError: the store failed
        """
        customer = self._validate(req)
        booking = Booking()
        self._apply(booking, req, customer)

        try:
            with transaction.atomic():
                self._check_and_save(booking)
        except BookingConflictError as exc:
            logger.warning(
                "Rejected booking for %s at %s: conflicts with #%s",
                booking.staff, booking.start_time, exc.conflict_id,
            )
            raise
        except DatabaseError as exc:
            logger.exception("Failed to create booking for customer #%s", req.customer_id)
            raise BookingPersistenceError("Booking store is unavailable.") from exc

        logger.info(
            "Created booking #%s (staff=%r, %s - %s)",
            booking.pk, booking.staff, booking.start_time, booking.end_time,
        )
        return booking

    def update_booking(self, booking_id, req: BookingRequest) -> Booking:
        """
        Replace all mutable fields of a booking after the overlap check.
        The booking itself is excluded from the check.

        Raises:
            BookingValidationError, BookingNotFoundError,
            BookingConflictError, BookingPersistenceError
        """
        customer = self._validate(req)

        try:
            with transaction.atomic():
                booking = (
                    Booking.objects.select_for_update()
                    .filter(pk=booking_id)
                    .first()
                )
                if booking is None:
                    raise BookingNotFoundError(booking_id)
                self._apply(booking, req, customer)
                self._check_and_save(booking)
        except BookingConflictError as exc:
            logger.warning(
                "Rejected update of booking #%s for %s at %s: conflicts with #%s",
                booking_id, exc.staff, req.start, exc.conflict_id,
            )
            raise
        except DatabaseError as exc:
            logger.exception("Failed to update booking #%s", booking_id)
            raise BookingPersistenceError("Booking store is unavailable.") from exc

        logger.info(
            "Updated booking #%s (staff=%r, %s - %s)",
            booking.pk, booking.staff, booking.start_time, booking.end_time,
        )
        return booking

    def delete_booking(self, booking_id) -> None:
        """Remove a booking by id. No conflict re-check."""
        try:
            with transaction.atomic():
                deleted, _ = Booking.objects.filter(pk=booking_id).delete()
        except DatabaseError as exc:
            logger.exception("Failed to delete booking #%s", booking_id)
            raise BookingPersistenceError("Booking store is unavailable.") from exc

        if not deleted:
            raise BookingNotFoundError(booking_id)
        logger.info("Deleted booking #%s", booking_id)

    def save_booking(self, booking: Booking) -> Booking:
        """
        Conflict-checked save of an already populated Booking instance
        (used by the admin, whose form builds the instance itself).
        """
        booking.staff = normalize_staff(booking.staff)
        try:
            with transaction.atomic():
                self._check_and_save(booking)
        except DatabaseError as exc:
            logger.exception("Failed to save booking #%s", booking.pk)
            raise BookingPersistenceError("Booking store is unavailable.") from exc
        return booking
