"""
Deadline and urgency computations for the dashboard and the calendar.
Pure functions over a booking list and a reference time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence

from config import URGENT_WINDOW_HOURS
from models import Booking, BookingStatus, CLOSED_FOR_URGENCY, ensure_utc, format_timestamp, utc_now


class EventKind(str, Enum):
    TRAVEL = "Travel"
    DEADLINE = "Deadline"


@dataclass(frozen=True)
class CalendarEvent:
    timestamp: datetime
    kind: EventKind
    booking: Booking

    def to_dict(self) -> dict:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "kind": self.kind.value,
            "booking_id": self.booking.id,
            "pnr": self.booking.pnr,
            "route": self.booking.route,
            "client_name": self.booking.client_name,
        }


@dataclass
class DashboardStats:
    """Headline counts for the dashboard. Nothing here is persisted."""
    total_active: int
    ticketed: int
    expired_or_cancelled: int
    urgent_count: int
    pipeline_value: float
    status_breakdown: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_active": self.total_active,
            "ticketed": self.ticketed,
            "expired_or_cancelled": self.expired_or_cancelled,
            "urgent_count": self.urgent_count,
            "pipeline_value": self.pipeline_value,
            "status_breakdown": dict(self.status_breakdown),
        }


def _now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now else utc_now()


def hours_until_deadline(booking: Booking, now: Optional[datetime] = None) -> float:
    delta = ensure_utc(booking.ticketing_deadline) - _now(now)
    return delta.total_seconds() / 3600


def hours_remaining_label(booking: Booking, now: Optional[datetime] = None) -> str:
    return f"{math.floor(hours_until_deadline(booking, now))}h remaining"


def upcoming_events(bookings: Sequence[Booking], now: Optional[datetime] = None) -> List[CalendarEvent]:
    """
    Travel and deadline events from now on, oldest first.

    Each booking contributes its travel event before its deadline event,
    and the sort is stable, so equal timestamps keep that order.
    """
    now = _now(now)
    events = []
    for booking in bookings:
        events.append(CalendarEvent(ensure_utc(booking.departure_date), EventKind.TRAVEL, booking))
        events.append(CalendarEvent(ensure_utc(booking.ticketing_deadline), EventKind.DEADLINE, booking))
    events.sort(key=lambda e: e.timestamp)
    return [e for e in events if e.timestamp >= now]


def urgent_bookings(
    bookings: Sequence[Booking],
    now: Optional[datetime] = None,
    window_hours: float = URGENT_WINDOW_HOURS,
) -> List[Booking]:
    """Open bookings whose deadline falls within the next window_hours, soonest first."""
    now = _now(now)
    urgent = [
        b for b in bookings
        if 0 < hours_until_deadline(b, now) <= window_hours and b.status not in CLOSED_FOR_URGENCY
    ]
    return sorted(urgent, key=lambda b: ensure_utc(b.ticketing_deadline))


def is_overdue(booking: Booking, now: Optional[datetime] = None) -> bool:
    """Deadline passed without ticketing. Display only; status is never changed."""
    return ensure_utc(booking.ticketing_deadline) < _now(now) and booking.status != BookingStatus.TICKETED


def pipeline_value(bookings: Sequence[Booking]) -> float:
    # Single operating currency; no conversion.
    return sum(
        b.price for b in bookings
        if b.status not in (BookingStatus.CANCELLED, BookingStatus.EXPIRED)
    )


def dashboard_stats(
    bookings: Sequence[Booking],
    now: Optional[datetime] = None,
    window_hours: float = URGENT_WINDOW_HOURS,
) -> DashboardStats:
    def count(*statuses):
        return sum(1 for b in bookings if b.status in statuses)

    return DashboardStats(
        total_active=count(BookingStatus.PENDING, BookingStatus.OPTIONED),
        ticketed=count(BookingStatus.TICKETED),
        expired_or_cancelled=count(BookingStatus.EXPIRED, BookingStatus.CANCELLED),
        urgent_count=len(urgent_bookings(bookings, now, window_hours)),
        pipeline_value=pipeline_value(bookings),
        status_breakdown={
            "Pending": count(BookingStatus.PENDING),
            "Optioned": count(BookingStatus.OPTIONED),
            "Ticketed": count(BookingStatus.TICKETED),
            "Expired/Canc": count(BookingStatus.EXPIRED, BookingStatus.CANCELLED),
        },
    )
