"""Calendar client against the real booking API, routed through Django's test client."""

from datetime import date, datetime

import httpx
from django.test import TestCase

from booking.models import Booking, Customer
from calendar_client.api import BookingApiClient
from calendar_client.controller import CalendarController, EditState
from calendar_client.windows import DAY


def at(hh, mm=0):
    return datetime(2025, 3, 3, hh, mm)


class CalendarEndToEndTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Acme Trading")
        self.review = Booking.objects.create(
            customer=self.customer, staff="Jason", start_time=at(10), end_time=at(11), title="Review"
        )
        self.demo = Booking.objects.create(
            customer=self.customer, staff="Jason", start_time=at(13), end_time=at(14), title="Demo",
            method="visit",
        )

    def forward(self, request: httpx.Request) -> httpx.Response:
        response = self.client.generic(
            request.method,
            request.url.raw_path.decode(),
            data=request.content,
            content_type="application/json",
        )
        return httpx.Response(
            response.status_code,
            content=response.content,
            headers={"Content-Type": response["Content-Type"]},
        )

    def controller(self, **kwargs):
        api = BookingApiClient("http://testserver/api", transport=httpx.MockTransport(self.forward))
        self.addCleanup(api.close)
        controller = CalendarController(api, notify=lambda level, msg: None, **kwargs)
        controller.show(DAY, date(2025, 3, 3))
        return controller

    def test_drag_is_persisted(self):
        controller = self.controller()
        gesture = controller.begin_drag(self.demo.pk)
        gesture.move_to(at(15))
        result = gesture.release()

        self.assertEqual(result.state, EditState.COMMITTED)
        self.demo.refresh_from_db()
        self.assertEqual((self.demo.start_time, self.demo.end_time), (at(15), at(16)))
        # Full replace keeps the fields the client sent back.
        self.assertEqual(self.demo.method, "visit")
        self.assertEqual(result.booking.customer_name, "Acme Trading")

    def test_stale_cache_is_caught_by_server(self):
        first = self.controller()
        second = self.controller()

        # Another user takes 15:00 after the second calendar loaded its window.
        self.assertTrue(first.reschedule(self.review.pk, at(15), at(16)).ok)

        result = second.reschedule(self.demo.pk, at(15, 30), at(16, 30))

        self.assertEqual(result.state, EditState.REJECTED)
        self.assertTrue(result.sent)
        self.assertEqual(result.conflict.id, self.review.pk)
        self.assertIn(f"#{self.review.pk}", result.message)
        self.assertEqual(second.get(self.demo.pk).start, at(13))
        self.demo.refresh_from_db()
        self.assertEqual(self.demo.start_time, at(13))

    def test_staff_filter_limits_window(self):
        Booking.objects.create(customer=self.customer, staff="Mia", start_time=at(9), end_time=at(10))
        controller = self.controller(staff="Mia")
        self.assertEqual([b.staff for b in controller.bookings], ["Mia"])

    def test_create_and_delete(self):
        controller = self.controller()
        created = controller.create(
            {"resourceOwnerId": self.customer.pk, "staff": "Jason", "start": at(16), "end": at(17)}
        )
        self.assertTrue(created.ok)
        self.assertTrue(Booking.objects.filter(pk=created.booking.id).exists())

        deleted = controller.delete(created.booking.id)
        self.assertTrue(deleted.ok)
        self.assertFalse(Booking.objects.filter(pk=created.booking.id).exists())
