# booking/urls.py
#
# Purpose:
# - Expose the booking JSON API via a DRF router (mounted under /api/).
#
# Routes:
#   GET/POST         /api/bookings
#   GET/PUT/DELETE   /api/bookings/{id}
#   GET              /api/customers, /api/customers/{id}
#   GET              /api/customers/{id}/bookings
#
# Notes for developers:
# - trailing_slash=False so the paths match what the calendar client calls.

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import BookingViewSet, CustomerViewSet

router = DefaultRouter(trailing_slash=False)
router.register(r"bookings", BookingViewSet, basename="booking")
router.register(r"customers", CustomerViewSet, basename="customer")

urlpatterns = [
    path("", include(router.urls)),
]
