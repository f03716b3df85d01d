from django.contrib import admin, messages
from django.http import HttpResponseRedirect

from .exceptions import BookingError
from .models import Booking, Customer
from .services.booking_manager import BookingManager


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "phone", "email")
    search_fields = ("name", "phone", "email")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "staff", "start_time", "end_time", "title", "status")
    list_filter = ("staff", "status")
    search_fields = ("customer__name", "staff", "title", "content")
    date_hierarchy = "start_time"
    readonly_fields = ("created_at",)

    def save_model(self, request, obj, form, change):
        # Re-checked under the staff lock; clean() alone is not authoritative.
        try:
            BookingManager().save_booking(obj)
        except BookingError as exc:
            request.booking_save_error = str(exc)
            self.message_user(request, str(exc), level=messages.ERROR)

    def log_addition(self, request, obj, message):
        if not getattr(request, "booking_save_error", None):
            return super().log_addition(request, obj, message)

    def log_change(self, request, obj, message):
        if not getattr(request, "booking_save_error", None):
            return super().log_change(request, obj, message)

    def response_add(self, request, obj, post_url_continue=None):
        if getattr(request, "booking_save_error", None):
            return HttpResponseRedirect(request.path)
        return super().response_add(request, obj, post_url_continue)

    def response_change(self, request, obj):
        if getattr(request, "booking_save_error", None):
            return HttpResponseRedirect(request.path)
        return super().response_change(request, obj)
