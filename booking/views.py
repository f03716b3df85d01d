# booking/views.py
#
# Purpose:
# - JSON API for bookings (calendar hydration + conflict-checked writes).
# - Read-only customer endpoints used by the calendar for display and for the
#   per-customer bookings tab.
#
# Status codes:
# - POST/PUT success returns 200 with the canonical booking.
# - 400 validation ({message, errors}), 404 unknown id,
#   409 conflict ({message, conflict}), 500 store failure ({message}).
#
# Notes for developers:
# - The views never decide conflicts themselves. BookingManager re-checks
#   inside its transaction on every write; whatever the client pre-checked
#   is advisory only.
# - PATCH is not routed: updates are full replacements via PUT.
#
import logging

from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .exceptions import (
    BookingConflictError,
    BookingError,
    BookingNotFoundError,
    BookingPersistenceError,
    BookingValidationError,
)
from .models import Customer
from .serializers import BookingSerializer, BookingWriteSerializer, CustomerSerializer
from .services.booking_manager import BookingManager
from .services.range_query import BookingFilters, BookingRangeQuery
from .services.slot_utils import WindowParseError, parse_window

logger = logging.getLogger(__name__)


# -------------------- Error mapping --------------------
def booking_error_response(exc: BookingError) -> Response:
    """Translate a service exception into the API's error body."""
    if isinstance(exc, BookingValidationError):
        return Response(
            {"message": exc.message, "errors": exc.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(exc, BookingNotFoundError):
        return Response({"message": str(exc)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, BookingConflictError):
        return Response(
            {"message": str(exc), "conflict": BookingSerializer(exc.conflict).data},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, BookingPersistenceError):
        return Response(
            {"message": "The booking could not be saved. Please try again."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    raise exc


def _optional_int(params, name):
    raw = (params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise BookingValidationError(
            f"'{name}' must be an integer.", {name: ["A valid integer is required."]}
        )


def list_bookings_response(request, resource_owner_id=None) -> Response:
    """
    GET handler shared by /bookings and /customers/{id}/bookings.

    Query parameters:
      - from, to: window bounds (YYYY-MM-DD or ISO timestamp, both optional)
      - resourceOwnerId, staff, keyword: filters
      - page (1-based), pageSize
    """
    params = request.query_params
    try:
        window_from, window_to = parse_window(params.get("from"), params.get("to"))
    except WindowParseError as e:
        return Response({"message": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    try:
        if resource_owner_id is None:
            resource_owner_id = _optional_int(params, "resourceOwnerId")
        page_no = _optional_int(params, "page") or 1
        page_size = _optional_int(params, "pageSize")

        filters = BookingFilters(
            resource_owner_id=resource_owner_id,
            staff=params.get("staff"),
            keyword=params.get("keyword"),
        )
        page = BookingRangeQuery().list(
            window_from=window_from,
            window_to=window_to,
            filters=filters,
            page=page_no,
            page_size=page_size,
        )
    except BookingError as e:
        return booking_error_response(e)

    return Response({
        "items": BookingSerializer(page.items, many=True).data,
        "total": page.total,
    })


# -------------------- ViewSets --------------------
class BookingViewSet(viewsets.GenericViewSet):
    """
    Endpoints:
    - GET    /api/bookings          window query -> {items, total}
    - POST   /api/bookings          create (conflict-checked)
    - GET    /api/bookings/{id}     one booking
    - PUT    /api/bookings/{id}     full replace (conflict-checked, self excluded)
    - DELETE /api/bookings/{id}     unconditional delete
    """
    serializer_class = BookingSerializer
    lookup_value_regex = r"\d+"
    manager = BookingManager()

    def _parse_request(self, request):
        serializer = BookingWriteSerializer(data=request.data)
        if not serializer.is_valid():
            raise BookingValidationError("Booking request is invalid.", serializer.errors)
        return serializer.to_request()

    def list(self, request):
        return list_bookings_response(request)

    def retrieve(self, request, pk=None):
        try:
            booking = self.manager.get_booking(pk)
        except BookingError as e:
            return booking_error_response(e)
        return Response(BookingSerializer(booking).data)

    def create(self, request):
        """
        Create a booking:
        - Requires resourceOwnerId and start; everything else optional.
        - 409 names the conflicting booking when the staff is busy.
        """
        try:
            booking = self.manager.create_booking(self._parse_request(request))
        except BookingError as e:
            return booking_error_response(e)
        return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)

    def update(self, request, pk=None):
        """
        Replace a booking. Fields missing from the body are cleared, so
        clients send the whole booking (the calendar does after a drag).
        """
        try:
            booking = self.manager.update_booking(pk, self._parse_request(request))
        except BookingError as e:
            return booking_error_response(e)
        return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        try:
            self.manager.delete_booking(pk)
        except BookingError as e:
            return booking_error_response(e)
        return Response({}, status=status.HTTP_200_OK)


class CustomerViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only customer lookup (customer CRUD lives in the wider CRM).
    - GET /api/customers?keyword=   search by name/phone/email
    - GET /api/customers/{id}/bookings   same window query, pre-filtered
    """
    serializer_class = CustomerSerializer
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        qs = Customer.objects.all().order_by("id")
        keyword = (self.request.query_params.get("keyword") or "").strip()
        if keyword:
            qs = qs.filter(
                Q(name__icontains=keyword)
                | Q(phone__icontains=keyword)
                | Q(email__icontains=keyword)
            )
        return qs

    @action(detail=True, methods=["get"], url_path="bookings")
    def bookings(self, request, pk=None):
        customer = self.get_object()
        return list_bookings_response(request, resource_owner_id=customer.pk)
