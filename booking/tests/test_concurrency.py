# booking/tests/test_concurrency.py

import threading
import time
from datetime import datetime
from unittest import mock

from django.db import connection
from django.test import TransactionTestCase

from booking.exceptions import BookingConflictError, BookingError, BookingPersistenceError
from booking.models import Booking, Customer, StaffLock
from booking.services.booking_manager import BookingManager, BookingRequest
from booking.services.conflict_detector import ConflictDetector


class ConcurrentBookingTests(TransactionTestCase):
    """Two writers racing for the same staff slot: exactly one commits."""

    def setUp(self):
        self.customer = Customer.objects.create(name="Acme Trading")

    def race(self, requests):
        barrier = threading.Barrier(len(requests))
        outcomes = []
        original = ConflictDetector.find_conflict

        def slow_find_conflict(detector, *args, **kwargs):
            found = original(detector, *args, **kwargs)
            # Hold the gap between the check and the insert open.
            time.sleep(0.3)
            return found

        def book(req):
            try:
                barrier.wait(timeout=5)
                BookingManager().create_booking(req)
                outcomes.append("created")
            except BookingError as exc:
                outcomes.append(exc)
            finally:
                connection.close()

        with mock.patch.object(ConflictDetector, "find_conflict", slow_find_conflict):
            threads = [threading.Thread(target=book, args=(req,)) for req in requests]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=30)
        return outcomes

    def request(self, staff, hh):
        return BookingRequest(
            customer_id=self.customer.pk,
            staff=staff,
            start=datetime(2025, 3, 3, hh),
            end=datetime(2025, 3, 3, hh + 1),
        )

    def test_same_staff_same_slot_only_one_commits(self):
        outcomes = self.race([self.request("Jason", 10), self.request("Jason", 10)])

        self.assertEqual(len(outcomes), 2)
        self.assertEqual(outcomes.count("created"), 1)
        loser = next(o for o in outcomes if o != "created")
        self.assertIsInstance(loser, (BookingConflictError, BookingPersistenceError))
        self.assertEqual(Booking.objects.filter(staff="Jason").count(), 1)
        self.assertEqual(StaffLock.objects.filter(staff="Jason").count(), 1)

    def test_loser_sees_winner_as_conflict(self):
        StaffLock.objects.create(staff="Jason")
        outcomes = self.race([self.request("Jason", 10), self.request("Jason", 10)])

        winner = Booking.objects.get(staff="Jason")
        conflicts = [o for o in outcomes if isinstance(o, BookingConflictError)]
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].conflict_id, winner.pk)

    def test_different_staff_both_commit(self):
        outcomes = self.race([self.request("Jason", 10), self.request("Mia", 10)])

        self.assertEqual(outcomes, ["created", "created"])
        self.assertEqual(Booking.objects.count(), 2)
