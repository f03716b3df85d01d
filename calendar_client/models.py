"""Client-side booking representation and the overlap rule used for pre-checks."""

from dataclasses import dataclass, replace
from datetime import datetime


def parse_timestamp(value):
    if not value:
        return None
    return datetime.fromisoformat(value)


def format_timestamp(value):
    return value.isoformat() if value is not None else None


def effective_end(start, end):
    """An open booking is the point [start, start)."""
    return end if end is not None else start


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Strict half-open overlap; touching endpoints do not overlap."""
    return a_start < effective_end(b_start, b_end) and b_start < effective_end(a_start, a_end)


@dataclass(frozen=True)
class CalendarBooking:
    id: int
    resource_owner_id: int | None
    start: datetime
    end: datetime | None = None
    title: str = ""
    content: str = ""
    staff: str = ""
    method: str = ""
    location: str = ""
    status: str = ""
    customer_name: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_json(cls, data: dict) -> "CalendarBooking":
        return cls(
            id=int(data["id"]),
            resource_owner_id=data.get("resourceOwnerId"),
            start=parse_timestamp(data.get("start")),
            end=parse_timestamp(data.get("end")),
            title=data.get("title") or "",
            content=data.get("content") or "",
            staff=data.get("staff") or "",
            method=data.get("method") or "",
            location=data.get("location") or "",
            status=data.get("status") or "",
            customer_name=data.get("customerName"),
            created_at=parse_timestamp(data.get("createdAt")),
        )

    @property
    def effective_end(self) -> datetime:
        return effective_end(self.start, self.end)

    def to_payload(self) -> dict:
        """Full-replace body for PUT /bookings/{id}."""
        return {
            "resourceOwnerId": self.resource_owner_id,
            "start": format_timestamp(self.start),
            "end": format_timestamp(self.end),
            "title": self.title,
            "content": self.content,
            "staff": self.staff,
            "method": self.method,
            "location": self.location,
            "status": self.status,
        }

    def with_times(self, start: datetime, end: datetime | None) -> "CalendarBooking":
        return replace(self, start=start, end=end)

    def label(self) -> str:
        title = self.title or "(untitled)"
        return f"{title} · {self.customer_name}" if self.customer_name else title
