# booking/models.py
#
# Purpose:
# - Core domain models for the CRM scheduling core.
#
# Design highlights:
# - Customer: the person a booking is for. CRUD lives elsewhere in the CRM;
#   here it is only used to validate resourceOwnerId and to show a name.
# - Booking:
#   • Records customer, staff (free text, optional), start_time, end_time
#   • end_time is optional; an open booking is treated as the point [start, start)
#   • staff is the contention key: two bookings for the same non-empty staff
#     must never overlap (enforced by BookingManager, not by the database)
# - StaffLock: one row per staff key. BookingManager locks it with
#   SELECT ... FOR UPDATE so that read-check-write runs serialised per staff.
#
# Notes for developers:
# - Timestamps are naive local times (USE_TZ = False).
# - Booking.clean() runs the same conflict check so the admin form shows
#   a friendly error; the authoritative check is still BookingManager's.
#

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Coalesce


# -------------------------
# Customer (resource owner)
# -------------------------
class Customer(models.Model):
    """
    A CRM customer that bookings are made for.
    Only the fields needed for display enrichment are kept here.
    """
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.name


# -------------------------
# Booking queryset helpers
# -------------------------
class BookingQuerySet(models.QuerySet):
    def with_effective_end(self):
        """
        Annotate effective_end_at = COALESCE(end_time, start_time) so interval
        filters can treat open bookings as zero-length.
        """
        return self.annotate(effective_end_at=Coalesce("end_time", "start_time"))

    def for_staff(self, staff):
        return self.filter(staff=(staff or "").strip())


# -------------------------
# Booking record
# -------------------------
class Booking(models.Model):
    """
    Time-bound appointment of a customer with a staff member.

    - staff may be blank; blank staff opts the booking out of conflict checks.
    - title/content/method/location/status are descriptive and unconstrained.
    """
    customer = models.ForeignKey(
        Customer,
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    staff = models.CharField(max_length=100, blank=True, default="")
    start_time = models.DateTimeField()
    end_time = models.DateTimeField(null=True, blank=True)
    title = models.CharField(max_length=200, blank=True, default="")
    content = models.TextField(blank=True, default="")
    method = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Booking channel (phone, visit, online, ...).",
    )
    location = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(max_length=50, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        ordering = ["start_time", "id"]
        indexes = [
            models.Index(fields=["staff", "start_time"], name="booking_staff_start_idx"),
        ]

    def __str__(self):
        who = self.staff or "unassigned"
        return f"#{self.pk} {self.customer.name} with {who} at {self.start_time:%Y-%m-%d %H:%M}"

    @property
    def effective_end(self):
        """end_time, or start_time for open (point) bookings."""
        return self.end_time or self.start_time

    def clean(self):
        """
        Form-level validation (admin and anything calling full_clean()):
        - end_time must not precede start_time
        - no overlap with another booking of the same staff (excludes self.pk)
        """
        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValidationError({"end_time": "End time cannot be earlier than start time."})

        self.staff = (self.staff or "").strip()
        if not self.start_time or not self.staff:
            return

        # Local import: services import this module.
        from .services.conflict_detector import ConflictDetector

        conflict = ConflictDetector().find_conflict(
            staff=self.staff,
            start=self.start_time,
            end=self.end_time,
            exclude_id=self.pk,
        )
        if conflict is not None:
            raise ValidationError(
                f"Time conflict: {self.staff} already has booking #{conflict.pk} "
                f"at {conflict.start_time:%Y-%m-%d %H:%M}."
            )


# -------------------------
# Per-staff write lock
# -------------------------
class StaffLock(models.Model):
    """
    Lock target for serialising conflict-checked writes of one staff key.
    Rows are created on first use and never deleted.
    """
    staff = models.CharField(max_length=100, unique=True)

    def __str__(self):
        return self.staff
