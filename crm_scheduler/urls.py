# crm_scheduler/urls.py
#
# Purpose:
# - Project URL router.
# - Keeps the DRF router under /api/ and the Django admin under /admin/.
#
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Django admin (bookings are saved through BookingManager there too)
    path("admin/", admin.site.urls),

    # All JSON APIs live under /api/
    path("api/", include("booking.urls")),
]
