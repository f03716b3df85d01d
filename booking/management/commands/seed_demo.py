"""
seed_demo.py
------------
Seeds demo customers and a week of bookings so the calendar has something
to show. Customers are upserted by name; bookings go through BookingManager,
so anything that would overlap an existing booking of the same staff is
skipped and counted, never forced in.

Usage:
    python manage.py seed_demo
    python manage.py seed_demo --start 2025-03-03
"""

from datetime import date, datetime, time, timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from booking.exceptions import BookingConflictError
from booking.models import Customer
from booking.services.booking_manager import BookingManager, BookingRequest


CUSTOMERS = [
    {"name": "Acme Trading", "phone": "5550100", "email": "ops@acme.example"},
    {"name": "Blue Harbor Cafe", "phone": "5550101", "email": "hello@blueharbor.example"},
    {"name": "Northwind Clinic", "phone": "5550102", "email": "desk@northwind.example"},
]

# (day offset, start hh:mm, minutes or None for an open booking, staff, customer index, title, method)
SCHEDULE = [
    (0, "09:00", 60, "Jason", 0, "Quarterly review", "visit"),
    (0, "10:00", 30, "Jason", 1, "Follow-up call", "phone"),
    (0, "10:00", 60, "Mia", 2, "Contract walkthrough", "online"),
    (1, "14:00", 90, "Mia", 0, "Onsite demo", "visit"),
    (2, "11:00", None, "", 1, "Send price list", "phone"),
    (3, "16:30", 45, "Jason", 2, "Renewal discussion", "online"),
]


def _at(day: date, hhmm: str) -> datetime:
    h, m = hhmm.split(":")
    return datetime.combine(day, time(int(h), int(m)))


class Command(BaseCommand):
    help = "Seed demo customers and bookings for the calendar."

    def add_arguments(self, parser):
        parser.add_argument("--start", help="First day of the demo week (YYYY-MM-DD). Defaults to today.")

    def handle(self, *args, **options):
        start_day = date.today()
        if options.get("start"):
            start_day = parse_date(options["start"])
            if start_day is None:
                raise CommandError("--start must be YYYY-MM-DD")

        customers = []
        for item in CUSTOMERS:
            customer, _ = Customer.objects.get_or_create(
                name=item["name"],
                defaults={"phone": item["phone"], "email": item["email"]},
            )
            customers.append(customer)

        manager = BookingManager()
        created = 0
        skipped = 0
        for offset, hhmm, minutes, staff, cust_idx, title, method in SCHEDULE:
            start = _at(start_day + timedelta(days=offset), hhmm)
            end = start + timedelta(minutes=minutes) if minutes else None
            try:
                manager.create_booking(BookingRequest(
                    customer_id=customers[cust_idx].pk,
                    start=start,
                    end=end,
                    title=title,
                    staff=staff,
                    method=method,
                    status="scheduled",
                ))
                created += 1
            except BookingConflictError:
                skipped += 1

        self.stdout.write(self.style.SUCCESS(
            f"Seed complete. Customers={len(customers)}, Bookings created={created}, skipped={skipped}"
        ))
