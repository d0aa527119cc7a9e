"""
Booking lifecycle: creation with input validation, freeform status changes
and confirmed deletion. All operations work on plain lists and return new
lists; the controller decides when to persist.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from config import DEFAULT_CURRENCY
from models import (
    Booking, BookingCategory, BookingStatus, Passenger, TripType,
    generate_uuid, parse_price, parse_timestamp, utc_now,
)

logger = logging.getLogger(__name__)


class BookingValidationError(ValueError):
    """Raised when booking input is missing required fields or has bad values."""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


class BookingNotFoundError(LookupError):
    pass


class ConfirmationRequiredError(Exception):
    """Raised when a destructive operation is attempted without confirmation."""
    pass


# ==================== HELPER FUNCTIONS ====================

def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    wanted = str(value).strip().lower()
    for member in enum_cls:
        if member.value.lower() == wanted:
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise BookingValidationError(f"Invalid {field_name} '{value}'. Choose from: {allowed}", [field_name])


def parse_status(value: Any) -> BookingStatus:
    """Accept a BookingStatus or its display value (case-insensitive)."""
    return _parse_enum(BookingStatus, value, "status")


def _parse_date(fields: Dict[str, Any], key: str, default: Optional[datetime]) -> Optional[datetime]:
    try:
        value = parse_timestamp(fields.get(key))
    except ValueError:
        raise BookingValidationError(f"Invalid date for {key}", [key]) from None
    return value if value is not None else default


def _parse_price(value: Any) -> float:
    try:
        return parse_price(value)
    except ValueError:
        raise BookingValidationError(f"Invalid price '{value}'", ["price"]) from None


def _text(fields: Dict[str, Any], key: str) -> str:
    value = fields.get(key)
    return "" if value is None else str(value).strip()


def _parse_passengers(raw: Any) -> List[Passenger]:
    if not raw or not isinstance(raw, list):
        return []
    passengers = []
    for entry in raw:
        if isinstance(entry, Passenger):
            passengers.append(entry)
        elif isinstance(entry, dict):
            passengers.append(Passenger.from_dict(entry))
        elif isinstance(entry, str):
            passengers.append(Passenger(name=entry.strip()))
    return passengers


# ==================== LIFECYCLE OPERATIONS ====================

def create_booking(fields: Dict[str, Any], now: Optional[datetime] = None) -> Booking:
    """
    Build a new booking from form fields (camelCase keys).

    PNR, client name and at least one named passenger are required.
    PNR and route are upper-cased; currency, status, trip type and
    category fall back to their defaults when not given.
    """
    now = now or utc_now()

    pnr = _text(fields, "pnr")
    client_name = _text(fields, "clientName")
    passengers = _parse_passengers(fields.get("passengers"))

    missing = []
    if not pnr:
        missing.append("pnr")
    if not client_name:
        missing.append("clientName")
    if not passengers:
        missing.append("passengers")
    elif any(not p.name for p in passengers):
        missing.append("passengers.name")
    if missing:
        raise BookingValidationError(f"Missing required fields: {', '.join(missing)}", missing)

    booking = Booking(
        id=generate_uuid(),
        created_at=now,
        category=_parse_enum(BookingCategory, fields.get("category") or BookingCategory.CLIENT, "category"),
        client_name=client_name,
        client_divers=fields.get("clientDivers") or None,
        passengers=passengers,
        route=_text(fields, "route").upper(),
        trip_type=_parse_enum(TripType, fields.get("tripType") or TripType.ROUND_TRIP, "tripType"),
        departure_date=_parse_date(fields, "departureDate", now),
        return_date=_parse_date(fields, "returnDate", None),
        airline=_text(fields, "airline"),
        price=_parse_price(fields.get("price")),
        currency=(_text(fields, "currency") or DEFAULT_CURRENCY).upper(),
        pnr=pnr.upper(),
        ticketing_deadline=_parse_date(fields, "ticketingDeadline", now),
        status=parse_status(fields.get("status") or BookingStatus.PENDING),
        conditions=fields.get("conditions") or "",
    )
    logger.info("Created booking %s for %s", booking.pnr, booking.client_name)
    return booking


def find_booking(bookings: Sequence[Booking], booking_id: str) -> Booking:
    for booking in bookings:
        if booking.id == booking_id:
            return booking
    raise BookingNotFoundError(f"Booking {booking_id} not found")


def set_status(bookings: Sequence[Booking], booking_id: str, new_status: Any) -> List[Booking]:
    """Overwrite one booking's status; any status may follow any other."""
    status = parse_status(new_status)
    find_booking(bookings, booking_id)
    updated = []
    for booking in bookings:
        if booking.id == booking_id:
            logger.info("Booking %s status %s -> %s", booking.pnr, booking.status.value, status.value)
            booking = replace(booking, status=status)
        updated.append(booking)
    return updated


def delete_booking(bookings: Sequence[Booking], booking_id: str, confirmed: bool) -> List[Booking]:
    """Remove a booking for good. The caller must have obtained confirmation."""
    if not confirmed:
        raise ConfirmationRequiredError("Deleting a booking requires confirmation")
    target = find_booking(bookings, booking_id)
    logger.info("Deleted booking %s", target.pnr)
    return [b for b in bookings if b.id != booking_id]
