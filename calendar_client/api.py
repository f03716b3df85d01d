"""HTTP client for the booking API used by the calendar controller."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .models import CalendarBooking, format_timestamp

logger = logging.getLogger(__name__)

API_URL = os.environ.get("CRM_API_URL", "http://localhost:8000/api")


class ApiError(Exception):
    """Base class for booking API failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiValidationError(ApiError):
    def __init__(self, message: str, errors: Optional[dict] = None):
        super().__init__(message, 400)
        self.errors = errors or {}


class ApiNotFoundError(ApiError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class ApiConflictError(ApiError):
    """409: the staff already has an overlapping booking."""

    def __init__(self, message: str, conflict: Optional[CalendarBooking] = None):
        super().__init__(message, 409)
        self.conflict = conflict


class ApiServerError(ApiError):
    """5xx: the server failed; the write did not happen."""


class ApiUnavailableError(ApiError):
    """No response (timeout, connection reset): the outcome is unknown."""


@dataclass
class BookingPage:
    items: list[CalendarBooking] = field(default_factory=list)
    total: int = 0


class BookingApiClient:
    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        client = self._get_client()
        try:
            response = client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s got no response: %s", method, path, e)
            raise ApiUnavailableError(f"No response from booking API: {e}") from e

        if response.is_success:
            return response.json() if response.content else {}
        raise self._error_for(response)

    @staticmethod
    def _error_for(response: httpx.Response) -> ApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("detail") or response.reason_phrase

        status = response.status_code
        if status == 400:
            return ApiValidationError(message, body.get("errors"))
        if status == 404:
            return ApiNotFoundError(message)
        if status == 409:
            conflict = body.get("conflict")
            return ApiConflictError(
                message,
                CalendarBooking.from_json(conflict) if conflict else None,
            )
        if status >= 500:
            return ApiServerError(message, status)
        return ApiError(message, status)

    def list_bookings(
        self,
        window_from=None,
        window_to=None,
        *,
        staff: Optional[str] = None,
        keyword: Optional[str] = None,
        resource_owner_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 500,
    ) -> BookingPage:
        params = {"page": page, "pageSize": page_size}
        if window_from is not None:
            params["from"] = format_timestamp(window_from)
        if window_to is not None:
            params["to"] = format_timestamp(window_to)
        if staff:
            params["staff"] = staff
        if keyword:
            params["keyword"] = keyword
        if resource_owner_id is not None:
            params["resourceOwnerId"] = resource_owner_id

        data = self._request("GET", "/bookings", params=params)
        return BookingPage(
            items=[CalendarBooking.from_json(item) for item in data.get("items", [])],
            total=int(data.get("total", 0)),
        )

    def get_booking(self, booking_id: int) -> CalendarBooking:
        return CalendarBooking.from_json(self._request("GET", f"/bookings/{booking_id}"))

    def create_booking(self, payload: dict) -> CalendarBooking:
        return CalendarBooking.from_json(self._request("POST", "/bookings", json=payload))

    def update_booking(self, booking_id: int, payload: dict) -> CalendarBooking:
        return CalendarBooking.from_json(
            self._request("PUT", f"/bookings/{booking_id}", json=payload)
        )

    def delete_booking(self, booking_id: int) -> None:
        self._request("DELETE", f"/bookings/{booking_id}")
