# booking/tests/test_booking_api.py

from datetime import datetime
from unittest import mock

from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from booking.exceptions import BookingPersistenceError
from booking.models import Booking, Customer
from booking.views import BookingViewSet


def at(hh, mm=0):
    return datetime(2025, 3, 3, hh, mm)


class BookingApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = Customer.objects.create(name="Acme Trading", phone="5550100")
        self.existing = Booking.objects.create(
            customer=self.customer, staff="Jason", start_time=at(10), end_time=at(11),
            title="Quarterly review",
        )

    def payload(self, **overrides):
        data = {
            "resourceOwnerId": self.customer.pk,
            "staff": "Jason",
            "start": "2025-03-03T11:00:00",
            "end": "2025-03-03T12:00:00",
            "title": "Follow-up",
        }
        data.update(overrides)
        return data

    # -------- create --------
    def test_create_returns_canonical_booking(self):
        resp = self.client.post("/api/bookings", self.payload(method="phone"), format="json")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["resourceOwnerId"], self.customer.pk)
        self.assertEqual(body["customerName"], "Acme Trading")
        self.assertEqual(body["start"], "2025-03-03T11:00:00")
        self.assertEqual(body["method"], "phone")
        self.assertTrue(Booking.objects.filter(pk=body["id"]).exists())

    def test_create_conflict_returns_409_with_conflict(self):
        resp = self.client.post(
            "/api/bookings",
            self.payload(start="2025-03-03T10:30:00", end="2025-03-03T11:30:00"),
            format="json",
        )

        self.assertEqual(resp.status_code, 409)
        body = resp.json()
        self.assertIn(f"#{self.existing.pk}", body["message"])
        self.assertEqual(body["conflict"]["id"], self.existing.pk)
        self.assertEqual(body["conflict"]["start"], "2025-03-03T10:00:00")
        self.assertEqual(Booking.objects.count(), 1)

    def test_create_missing_fields_returns_400(self):
        resp = self.client.post("/api/bookings", {"staff": "Jason"}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("resourceOwnerId", resp.json()["errors"])
        self.assertIn("start", resp.json()["errors"])

    def test_create_malformed_start_returns_400(self):
        resp = self.client.post("/api/bookings", self.payload(start="soon"), format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("start", resp.json()["errors"])

    def test_store_failure_returns_500(self):
        with mock.patch.object(
            BookingViewSet.manager,
            "create_booking",
            side_effect=BookingPersistenceError("Booking store is unavailable."),
        ):
            resp = self.client.post("/api/bookings", self.payload(), format="json")
        self.assertEqual(resp.status_code, 500)
        self.assertIn("message", resp.json())

    # -------- retrieve / update / delete --------
    def test_retrieve(self):
        resp = self.client.get(f"/api/bookings/{self.existing.pk}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["title"], "Quarterly review")

        self.assertEqual(self.client.get("/api/bookings/9999").status_code, 404)

    def test_put_replaces_booking(self):
        resp = self.client.put(
            f"/api/bookings/{self.existing.pk}",
            self.payload(start="2025-03-03T10:00:00", end="2025-03-03T11:30:00"),
            format="json",
        )
        self.assertEqual(resp.status_code, 200)

        self.existing.refresh_from_db()
        self.assertEqual(self.existing.end_time, at(11, 30))
        self.assertEqual(self.existing.title, "Follow-up")

    def test_put_without_start_returns_400_and_keeps_booking(self):
        resp = self.client.put(
            f"/api/bookings/{self.existing.pk}", self.payload(start=None), format="json"
        )
        self.assertEqual(resp.status_code, 400)
        self.existing.refresh_from_db()
        self.assertEqual(self.existing.start_time, at(10))

    def test_put_conflict_returns_409(self):
        other = Booking.objects.create(
            customer=self.customer, staff="Jason", start_time=at(13), end_time=at(14)
        )
        resp = self.client.put(
            f"/api/bookings/{other.pk}",
            self.payload(start="2025-03-03T10:30:00", end="2025-03-03T11:30:00"),
            format="json",
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["conflict"]["id"], self.existing.pk)

    def test_put_unknown_id_returns_404(self):
        resp = self.client.put("/api/bookings/9999", self.payload(), format="json")
        self.assertEqual(resp.status_code, 404)

    def test_patch_is_not_allowed(self):
        resp = self.client.patch(f"/api/bookings/{self.existing.pk}", {"title": "x"}, format="json")
        self.assertEqual(resp.status_code, 405)

    def test_delete(self):
        resp = self.client.delete(f"/api/bookings/{self.existing.pk}")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(Booking.objects.exists())
        self.assertEqual(self.client.delete(f"/api/bookings/{self.existing.pk}").status_code, 404)

    # -------- list --------
    def test_list_window(self):
        Booking.objects.create(customer=self.customer, staff="Mia", start_time=at(13), end_time=at(14))

        resp = self.client.get(
            "/api/bookings", {"from": "2025-03-03T09:00:00", "to": "2025-03-03T12:00:00"}
        )

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["total"], 1)
        self.assertEqual([b["id"] for b in body["items"]], [self.existing.pk])

    def test_list_date_only_window_covers_whole_day(self):
        resp = self.client.get("/api/bookings", {"from": "2025-03-03", "to": "2025-03-03"})
        self.assertEqual(resp.json()["total"], 1)

    def test_list_paging_and_keyword(self):
        for hh in (13, 14, 15):
            Booking.objects.create(
                customer=self.customer, staff="Mia", start_time=at(hh), end_time=at(hh, 30),
                title="Site visit",
            )

        resp = self.client.get("/api/bookings", {"keyword": "site", "page": 2, "pageSize": 2})
        body = resp.json()
        self.assertEqual(body["total"], 3)
        self.assertEqual(len(body["items"]), 1)

    @override_settings(TIME_ZONE="Europe/Berlin")
    def test_offset_timestamps_use_local_time_for_writes_and_windows(self):
        resp = self.client.post(
            "/api/bookings",
            self.payload(staff="Mia", start="2025-03-03T09:00:00+00:00", end="2025-03-03T10:00:00+00:00"),
            format="json",
        )
        self.assertEqual(resp.status_code, 200)
        created = Booking.objects.get(pk=resp.json()["id"])
        self.assertEqual((created.start_time, created.end_time), (at(10), at(11)))

        resp = self.client.get(
            "/api/bookings",
            {"from": "2025-03-03T09:00:00+00:00", "to": "2025-03-03T09:30:00+00:00", "staff": "Mia"},
        )
        self.assertEqual([b["id"] for b in resp.json()["items"]], [created.pk])

    def test_list_bad_window_returns_400(self):
        self.assertEqual(self.client.get("/api/bookings", {"from": "yesterday"}).status_code, 400)
        resp = self.client.get("/api/bookings", {"from": "2025-03-04", "to": "2025-03-03"})
        self.assertEqual(resp.status_code, 400)

    def test_list_bad_page_returns_400(self):
        self.assertEqual(self.client.get("/api/bookings", {"page": "two"}).status_code, 400)


class CustomerApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.acme = Customer.objects.create(name="Acme Trading", email="ops@acme.example")
        self.cafe = Customer.objects.create(name="Blue Harbor Cafe")
        Booking.objects.create(customer=self.acme, staff="Jason", start_time=at(10), end_time=at(11))
        Booking.objects.create(customer=self.cafe, staff="Jason", start_time=at(12), end_time=at(13))

    def test_customer_search(self):
        resp = self.client.get("/api/customers", {"keyword": "harbor"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([c["name"] for c in resp.json()], ["Blue Harbor Cafe"])

    def test_customer_detail(self):
        resp = self.client.get(f"/api/customers/{self.acme.pk}")
        self.assertEqual(resp.json()["email"], "ops@acme.example")

    def test_customer_bookings(self):
        resp = self.client.get(f"/api/customers/{self.cafe.pk}/bookings")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["total"], 1)
        self.assertEqual(body["items"][0]["customerName"], "Blue Harbor Cafe")

    def test_unknown_customer_bookings_returns_404(self):
        self.assertEqual(self.client.get("/api/customers/9999/bookings").status_code, 404)
