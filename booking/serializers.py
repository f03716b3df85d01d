from rest_framework import serializers

from .models import Booking, Customer
from .services.booking_manager import BookingRequest
from .services.slot_utils import to_local_naive


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "name", "phone", "email"]


class BookingSerializer(serializers.ModelSerializer):
    """Canonical read shape of a booking (camelCase, as the calendar UI expects)."""
    resourceOwnerId = serializers.IntegerField(source="customer_id", read_only=True)
    customerName = serializers.CharField(source="customer.name", read_only=True, default=None)
    start = serializers.DateTimeField(source="start_time", read_only=True)
    end = serializers.DateTimeField(source="end_time", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "resourceOwnerId",
            "customerName",
            "start",
            "end",
            "title",
            "content",
            "staff",
            "method",
            "location",
            "status",
            "createdAt",
        ]
        read_only_fields = fields


class LocalDateTimeField(serializers.DateTimeField):
    """Offsets are converted to naive local time, the same rule as window bounds."""

    def enforce_timezone(self, value):
        return to_local_naive(value)


class BookingWriteSerializer(serializers.Serializer):
    """
    Parses POST/PUT payloads. Nothing is required at this layer: required
    fields are enforced by BookingManager so every entry point reports them
    the same way. Omitted optional fields become empty (full replace).
    """
    resourceOwnerId = serializers.IntegerField(required=False, allow_null=True)
    start = LocalDateTimeField(required=False, allow_null=True)
    end = LocalDateTimeField(required=False, allow_null=True)
    title = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=200)
    content = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    staff = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    method = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=50)
    location = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=200)
    status = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=50)

    def to_request(self) -> BookingRequest:
        data = self.validated_data
        return BookingRequest(
            customer_id=data.get("resourceOwnerId"),
            start=data.get("start"),
            end=data.get("end"),
            title=data.get("title") or "",
            content=data.get("content") or "",
            staff=data.get("staff") or "",
            method=data.get("method") or "",
            location=data.get("location") or "",
            status=data.get("status") or "",
        )
