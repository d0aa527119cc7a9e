"""
Clients, colleagues, corporate partners and the agent profile.
Flat records: required-field checks on input, nothing else.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Sequence, TypeVar

from models import AgentProfile, Client, Colleague, CorporatePartner, generate_uuid

T = TypeVar("T")

LANGUAGES = ("en", "fr", "ar")
COMM_CHANNELS = ("Email", "WhatsApp", "Both")


class ContactValidationError(ValueError):
    pass


class ContactNotFoundError(LookupError):
    pass


def _clean(data: Dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else default


def _require(data: Dict[str, Any], *keys: str) -> None:
    missing = [k for k in keys if not _clean(data, k)]
    if missing:
        raise ContactValidationError(f"Missing required fields: {', '.join(missing)}")


def _choice(value: str, allowed: Sequence[str], default: str, field_name: str) -> str:
    if not value:
        return default
    if value not in allowed:
        raise ContactValidationError(f"Invalid {field_name} '{value}'. Choose from: {', '.join(allowed)}")
    return value


# ==================== CREATE ====================

def create_client(data: Dict[str, Any]) -> Client:
    _require(data, "name", "phone")
    return Client(
        id=generate_uuid(),
        name=_clean(data, "name"),
        phone=_clean(data, "phone"),
        email=_clean(data, "email"),
        language=_choice(_clean(data, "language"), LANGUAGES, "fr", "language"),
        preferred_comm=_choice(_clean(data, "preferredComm"), COMM_CHANNELS, "WhatsApp", "preferredComm"),
        notes=_clean(data, "notes"),
    )


def create_colleague(data: Dict[str, Any]) -> Colleague:
    _require(data, "name", "email")
    return Colleague(
        id=generate_uuid(),
        name=_clean(data, "name"),
        email=_clean(data, "email"),
        position=_clean(data, "position") or "Agent",
        phone=_clean(data, "phone"),
    )


def create_partner(data: Dict[str, Any]) -> CorporatePartner:
    _require(data, "companyName", "contactPerson")
    return CorporatePartner(
        id=generate_uuid(),
        company_name=_clean(data, "companyName"),
        contact_person=_clean(data, "contactPerson"),
        email=_clean(data, "email"),
        phone=_clean(data, "phone"),
        address=_clean(data, "address"),
        notes=_clean(data, "notes"),
    )


# ==================== UPDATE ====================

def update_client(existing: Client, data: Dict[str, Any]) -> Client:
    """Merge edited fields over the stored client; name and phone stay required."""
    merged = {**existing.to_dict(), **{k: v for k, v in data.items() if k != "id"}}
    _require(merged, "name", "phone")
    return replace(
        existing,
        name=_clean(merged, "name"),
        phone=_clean(merged, "phone"),
        email=_clean(merged, "email"),
        language=_choice(_clean(merged, "language"), LANGUAGES, "fr", "language"),
        preferred_comm=_choice(_clean(merged, "preferredComm"), COMM_CHANNELS, "WhatsApp", "preferredComm"),
        notes=_clean(merged, "notes"),
    )


def update_colleague(existing: Colleague, data: Dict[str, Any]) -> Colleague:
    merged = {**existing.to_dict(), **{k: v for k, v in data.items() if k != "id"}}
    _require(merged, "name", "email")
    return replace(
        existing,
        name=_clean(merged, "name"),
        email=_clean(merged, "email"),
        position=_clean(merged, "position") or "Agent",
        phone=_clean(merged, "phone"),
    )


def update_profile(existing: AgentProfile, data: Dict[str, Any]) -> AgentProfile:
    merged = {**existing.to_dict(), **data}
    _require(merged, "name", "agencyName")
    return AgentProfile.from_dict(merged)


# ==================== LOOKUP ====================

def find_by_id(records: Iterable[T], record_id: str) -> T:
    for record in records:
        if record.id == record_id:
            return record
    raise ContactNotFoundError(f"Record {record_id} not found")


def replace_by_id(records: Sequence[T], updated: T) -> List[T]:
    return [updated if r.id == updated.id else r for r in records]


def remove_by_id(records: Sequence[T], record_id: str) -> List[T]:
    find_by_id(records, record_id)
    return [r for r in records if r.id != record_id]


def search_clients(clients: Iterable[Client], term: str) -> List[Client]:
    """Name or e-mail (case-insensitive) or phone substring."""
    term = (term or "").strip()
    lowered = term.lower()
    return [
        c for c in clients
        if lowered in c.name.lower() or term in c.phone or lowered in c.email.lower()
    ]
