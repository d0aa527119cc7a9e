"""
TravelPro Desk - application state.
AgencyController owns every collection. Views get tuple snapshots; each
mutator builds the new collection, persists it, and only then swaps it in.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from bookings import (
    ConfirmationRequiredError, create_booking, delete_booking, find_booking, set_status,
)
from config import URGENT_WINDOW_HOURS
from contacts import (
    create_client, create_colleague, create_partner, find_by_id,
    remove_by_id, replace_by_id, update_client, update_colleague, update_profile,
)
from deadlines import (
    CalendarEvent, DashboardStats, dashboard_stats, hours_remaining_label,
    upcoming_events, urgent_bookings,
)
from messaging import (
    DraftTracker, NO_PHONE_MESSAGE, append_signature, booking_whatsapp_link,
    broadcast_mailto, generate_draft_message,
)
from models import (
    AgentProfile, Booking, Client, Colleague, CorporatePartner, DEFAULT_PROFILE, utc_now,
)
from queries import BookingFilter, suggest_counterparts
from reports import BookingReport, to_report
from storage import BackupFormatError, EntityStore, StorageError, parse_backup

logger = logging.getLogger(__name__)

_RECORD_TYPES = {
    "bookings": Booking,
    "clients": Client,
    "colleagues": Colleague,
    "partners": CorporatePartner,
}


def _to_records(kind: str, items: List[dict], strict: bool) -> list:
    record_cls = _RECORD_TYPES[kind]
    records = []
    for item in items:
        try:
            records.append(record_cls.from_dict(item))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            if strict:
                raise BackupFormatError(f"Invalid {kind} record: {e}") from e
            logger.warning("Skipping unreadable %s record: %s", kind, e)
    return records


class AgencyController:
    """Single owner of the agency's bookings, contacts and profile."""

    def __init__(
        self,
        store: EntityStore,
        draft_generator: Callable[..., str] = generate_draft_message,
        urgent_window_hours: float = URGENT_WINDOW_HOURS,
    ):
        self.store = store
        self.urgent_window_hours = urgent_window_hours
        self._draft_generator = draft_generator
        self.drafts = DraftTracker(generator=draft_generator)
        self.reload()

    def reload(self) -> None:
        """Read every collection back from the store."""
        self._bookings: List[Booking] = _to_records("bookings", self.store.load("bookings"), strict=False)
        self._clients: List[Client] = _to_records("clients", self.store.load("clients"), strict=False)
        self._colleagues: List[Colleague] = _to_records("colleagues", self.store.load("colleagues"), strict=False)
        self._partners: List[CorporatePartner] = _to_records("partners", self.store.load("partners"), strict=False)
        stored_profile = self.store.load_profile()
        self._profile = AgentProfile.from_dict(stored_profile) if stored_profile else DEFAULT_PROFILE
        logger.info(
            "Loaded %d bookings, %d clients, %d colleagues, %d partners",
            len(self._bookings), len(self._clients), len(self._colleagues), len(self._partners),
        )

    # ==================== SNAPSHOTS ====================

    @property
    def bookings(self) -> Tuple[Booking, ...]:
        return tuple(self._bookings)

    @property
    def clients(self) -> Tuple[Client, ...]:
        return tuple(self._clients)

    @property
    def colleagues(self) -> Tuple[Colleague, ...]:
        return tuple(self._colleagues)

    @property
    def partners(self) -> Tuple[CorporatePartner, ...]:
        return tuple(self._partners)

    @property
    def profile(self) -> AgentProfile:
        return self._profile

    def get_booking(self, booking_id: str) -> Booking:
        return find_booking(self._bookings, booking_id)

    # ==================== PERSISTENCE ====================

    def _commit(self, kind: str, records: list) -> None:
        # Raises StorageError before the in-memory list is touched
        self.store.save(kind, [r.to_dict() for r in records])
        setattr(self, f"_{kind}", list(records))

    # ==================== BOOKINGS ====================

    def add_booking(self, fields: Dict[str, Any], now: Optional[datetime] = None) -> Booking:
        booking = create_booking(fields, now=now)
        self._commit("bookings", [booking] + self._bookings)
        return booking

    def update_status(self, booking_id: str, new_status: Any) -> Booking:
        self._commit("bookings", set_status(self._bookings, booking_id, new_status))
        return self.get_booking(booking_id)

    def delete_booking(self, booking_id: str, confirmed: bool = False) -> None:
        self._commit("bookings", delete_booking(self._bookings, booking_id, confirmed))

    # ==================== CONTACTS ====================

    def add_client(self, data: Dict[str, Any]) -> Client:
        client = create_client(data)
        self._commit("clients", self._clients + [client])
        return client

    def update_client(self, client_id: str, data: Dict[str, Any]) -> Client:
        updated = update_client(find_by_id(self._clients, client_id), data)
        self._commit("clients", replace_by_id(self._clients, updated))
        return updated

    def delete_client(self, client_id: str, confirmed: bool = False) -> None:
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a client requires confirmation")
        self._commit("clients", remove_by_id(self._clients, client_id))

    def add_colleague(self, data: Dict[str, Any]) -> Colleague:
        colleague = create_colleague(data)
        self._commit("colleagues", self._colleagues + [colleague])
        return colleague

    def update_colleague(self, colleague_id: str, data: Dict[str, Any]) -> Colleague:
        updated = update_colleague(find_by_id(self._colleagues, colleague_id), data)
        self._commit("colleagues", replace_by_id(self._colleagues, updated))
        return updated

    def delete_colleague(self, colleague_id: str, confirmed: bool = False) -> None:
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a colleague requires confirmation")
        self._commit("colleagues", remove_by_id(self._colleagues, colleague_id))

    def add_partner(self, data: Dict[str, Any]) -> CorporatePartner:
        partner = create_partner(data)
        self._commit("partners", self._partners + [partner])
        return partner

    def delete_partner(self, partner_id: str, confirmed: bool = False) -> None:
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a partner requires confirmation")
        self._commit("partners", remove_by_id(self._partners, partner_id))

    def update_profile(self, data: Dict[str, Any]) -> AgentProfile:
        profile = update_profile(self._profile, data)
        self.store.save("profile", profile.to_dict())
        self._profile = profile
        return profile

    # ==================== BACKUP ====================

    def export_backup(self, now: Optional[datetime] = None) -> str:
        """Backup document as pretty-printed JSON; always carries the current profile."""
        document = self.store.export_all(now)
        document["profile"] = self._profile.to_dict()
        return json.dumps(document, indent=2, ensure_ascii=False)

    def import_backup(self, document) -> bool:
        """
        Replace every collection present in the document.
        False, with nothing changed, when any part of it is unusable.
        """
        try:
            raw = parse_backup(document)
            records = {k: _to_records(k, v, strict=True) for k, v in raw.items() if k in _RECORD_TYPES}
            profile = AgentProfile.from_dict(raw["profile"]) if "profile" in raw else None
            payload = {k: [r.to_dict() for r in v] for k, v in records.items()}
            if profile is not None:
                payload["profile"] = profile.to_dict()
            self.store.save_many(payload)
        except (BackupFormatError, StorageError) as e:
            logger.error("Failed to import database: %s", e)
            return False

        for kind, items in records.items():
            setattr(self, f"_{kind}", items)
        if profile is not None:
            self._profile = profile
        logger.info("Imported backup collections: %s", ", ".join(payload) or "none")
        return True

    # ==================== DERIVED VIEWS ====================

    def list_bookings(self, booking_filter: Optional[BookingFilter] = None) -> List[Booking]:
        return (booking_filter or BookingFilter()).apply(self._bookings)

    def dashboard(self, now: Optional[datetime] = None) -> Tuple[DashboardStats, List[dict]]:
        """KPIs plus the urgent list, each entry labelled with its hours remaining."""
        now = now or utc_now()
        stats = dashboard_stats(self._bookings, now, self.urgent_window_hours)
        urgent = [
            {**b.to_dict(), "hoursRemaining": hours_remaining_label(b, now)}
            for b in urgent_bookings(self._bookings, now, self.urgent_window_hours)
        ]
        return stats, urgent

    def calendar(self, now: Optional[datetime] = None) -> List[CalendarEvent]:
        return upcoming_events(self._bookings, now)

    def report(self, booking_filter: Optional[BookingFilter] = None,
               generated_at: Optional[datetime] = None) -> BookingReport:
        return to_report(self.list_bookings(booking_filter), generated_at=generated_at)

    def suggestions(self, category: Any, text: str) -> List[str]:
        return suggest_counterparts(category, text, self._clients, self._colleagues)

    def broadcast_link(self) -> Optional[str]:
        return broadcast_mailto(
            (c.email for c in self._clients),
            subject=f"Announcement from {self._profile.agency_name}",
        )

    # ==================== MESSAGING ====================

    def draft_message(self, booking_id: str, message_type: str = "offer",
                      tone: str = "professional") -> Dict[str, Optional[str]]:
        """Draft, sign and link a message for one booking."""
        booking = self.get_booking(booking_id)
        text = append_signature(self._draft_generator(booking, message_type, tone), self._profile)
        link = booking_whatsapp_link(booking, text)
        return {
            "message": text,
            "whatsapp_url": link,
            "notice": None if link else NO_PHONE_MESSAGE,
        }

    def open_draft(self, booking_id: str, message_type: str = "offer", tone: str = "professional",
                   on_ready: Optional[Callable[[str], None]] = None):
        """Start a background draft for the booking now open in the message panel."""
        return self.drafts.open(self.get_booking(booking_id), message_type, tone, on_ready)

    def close_draft(self) -> None:
        self.drafts.close()
