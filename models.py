"""
TravelPro Desk - domain records.
Bookings, passengers and the flat contact records kept by the agency,
with camelCase (de)serialization matching the backup document.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import pytz

import config


# ==================== UTILITY FUNCTIONS ====================

def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (trailing 'Z' allowed) or datetime to aware UTC.
    A string without an offset is wall-clock time in DISPLAY_TIMEZONE,
    as typed into a datetime-local field.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = pytz.timezone(config.DISPLAY_TIMEZONE).localize(parsed)
    return ensure_utc(parsed)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


def parse_price(value: Any) -> float:
    """Non-negative amount; whole numbers come back as int. Raises ValueError."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Invalid price: {value!r}")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid price: {value!r}") from None
    if price < 0 or price != price:
        raise ValueError(f"Invalid price: {value!r}")
    return int(price) if price.is_integer() else price


def _required_text(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' must be a non-empty string")
    return value


def _required_timestamp(data: Dict[str, Any], key: str) -> datetime:
    value = parse_timestamp(data[key])
    if value is None:
        raise ValueError(f"'{key}' is required")
    return value


# ==================== ENUMS ====================

class BookingStatus(str, Enum):
    PENDING = "Pending"
    OPTIONED = "Optioned"
    TICKETED = "Ticketed"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


class BookingCategory(str, Enum):
    CLIENT = "Client"
    COLLEAGUE = "Colleague"


class TripType(str, Enum):
    ONE_WAY = "One-way"
    ROUND_TRIP = "Round-trip"


# Statuses that never count as urgent
CLOSED_FOR_URGENCY = (BookingStatus.TICKETED, BookingStatus.CANCELLED)


# ==================== BOOKING ====================

@dataclass
class Passenger:
    """One traveller on a booking."""
    name: str
    phone: str = ""
    email: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "phone": self.phone, "email": self.email}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Passenger":
        return cls(
            name=str(data.get("name") or "").strip(),
            phone=data.get("phone") or "",
            email=data.get("email") or "",
        )


@dataclass
class Booking:
    """A flight reservation (PNR) held for a client or a colleague."""
    id: str
    created_at: datetime
    category: BookingCategory
    client_name: str
    passengers: List[Passenger]
    route: str
    trip_type: TripType
    departure_date: datetime
    airline: str
    price: float
    currency: str
    pnr: str
    ticketing_deadline: datetime
    status: BookingStatus
    conditions: str = ""
    client_divers: Optional[str] = None
    return_date: Optional[datetime] = None

    @property
    def passenger_names(self) -> List[str]:
        return [p.name for p in self.passengers]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "createdAt": format_timestamp(self.created_at),
            "category": self.category.value,
            "clientName": self.client_name,
            "clientDivers": self.client_divers,
            "passengers": [p.to_dict() for p in self.passengers],
            "route": self.route,
            "tripType": self.trip_type.value,
            "departureDate": format_timestamp(self.departure_date),
            "returnDate": format_timestamp(self.return_date),
            "airline": self.airline,
            "price": self.price,
            "currency": self.currency,
            "pnr": self.pnr,
            "ticketingDeadline": format_timestamp(self.ticketing_deadline),
            "status": self.status.value,
            "conditions": self.conditions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Booking":
        """Rebuild a stored booking. Raises ValueError/KeyError on a broken record."""
        passengers = [Passenger.from_dict(p) for p in data.get("passengers") or []]
        if not passengers or any(not p.name for p in passengers):
            raise ValueError("Booking needs at least one named passenger")
        return cls(
            id=_required_text(data, "id"),
            created_at=_required_timestamp(data, "createdAt"),
            category=BookingCategory(data.get("category") or BookingCategory.CLIENT.value),
            client_name=_required_text(data, "clientName"),
            client_divers=data.get("clientDivers"),
            passengers=passengers,
            route=data.get("route") or "",
            trip_type=TripType(data.get("tripType") or TripType.ROUND_TRIP.value),
            departure_date=_required_timestamp(data, "departureDate"),
            return_date=parse_timestamp(data.get("returnDate")),
            airline=data.get("airline") or "",
            price=parse_price(data.get("price")),
            currency=data.get("currency") or "MAD",
            pnr=_required_text(data, "pnr"),
            ticketing_deadline=_required_timestamp(data, "ticketingDeadline"),
            status=BookingStatus(data.get("status") or BookingStatus.PENDING.value),
            conditions=data.get("conditions") or "",
        )


# ==================== CONTACTS ====================

@dataclass
class Client:
    """Agency client; WhatsApp is the default channel."""
    id: str
    name: str
    phone: str
    email: str = ""
    role: str = "Client"
    language: str = "fr"
    preferred_comm: str = "WhatsApp"
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "language": self.language,
            "preferredComm": self.preferred_comm,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Client":
        return cls(
            id=data["id"],
            name=data["name"],
            phone=data.get("phone") or "",
            email=data.get("email") or "",
            role=data.get("role") or "Client",
            language=data.get("language") or "fr",
            preferred_comm=data.get("preferredComm") or "WhatsApp",
            notes=data.get("notes") or "",
        )


@dataclass
class Colleague:
    id: str
    name: str
    email: str
    position: str = "Agent"
    phone: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "email": self.email,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Colleague":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data.get("email") or "",
            position=data.get("position") or "Agent",
            phone=data.get("phone") or "",
        )


@dataclass
class CorporatePartner:
    """Corporate account with a named contact person."""
    id: str
    company_name: str
    contact_person: str
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyName": self.company_name,
            "contactPerson": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorporatePartner":
        return cls(
            id=data["id"],
            company_name=data["companyName"],
            contact_person=data["contactPerson"],
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            address=data.get("address") or "",
            notes=data.get("notes") or "",
        )


@dataclass
class AgentProfile:
    """The agent's own details, used to sign outbound messages."""
    name: str
    agency_name: str
    email: str = ""
    phone: str = ""
    website: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "agencyName": self.agency_name,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentProfile":
        return cls(
            name=data.get("name") or "",
            agency_name=data.get("agencyName") or "",
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            website=data.get("website"),
        )


DEFAULT_PROFILE = AgentProfile(
    name="Travel Agent Pro",
    agency_name="MHT Travel",
    email="fly@mht.ma",
    phone="+212661866437",
    website="www.mht.ma",
)
