import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from bookings import BookingValidationError, ConfirmationRequiredError
from controller import AgencyController
from messaging import NO_PHONE_MESSAGE
from models import BookingStatus, DEFAULT_PROFILE
from queries import BookingFilter
from reports import NothingToExportError
from storage import StorageError


def test_starts_empty_with_default_profile(controller):
    assert controller.bookings == ()
    assert controller.clients == ()
    assert controller.profile == DEFAULT_PROFILE


def test_add_booking_prepends_and_persists(controller, store, booking_fields, now):
    first = controller.add_booking(booking_fields, now=now)
    second = controller.add_booking({**booking_fields, "pnr": "zz9"}, now=now)

    assert [b.id for b in controller.bookings] == [second.id, first.id]
    assert [b["id"] for b in store.load("bookings")] == [second.id, first.id]


def test_invalid_booking_leaves_state_untouched(controller, store, booking_fields, now):
    controller.add_booking(booking_fields, now=now)
    with pytest.raises(BookingValidationError):
        controller.add_booking({"pnr": "X"}, now=now)
    assert len(controller.bookings) == 1
    assert len(store.load("bookings")) == 1


def test_state_survives_reload(controller, store, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)
    controller.add_client({"name": "Karim", "phone": "0600"})
    controller.update_profile({"name": "Nadia"})

    fresh = AgencyController(store)

    assert fresh.get_booking(booking.id) == booking
    assert fresh.clients[0].name == "Karim"
    assert fresh.profile.name == "Nadia"
    fresh.drafts.shutdown()


def test_update_status_persists(controller, store, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)
    updated = controller.update_status(booking.id, "Ticketed")
    assert updated.status == BookingStatus.TICKETED
    assert store.load("bookings")[0]["status"] == "Ticketed"


def test_failed_write_keeps_previous_state(controller, store, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)
    with patch.object(store, "save", side_effect=StorageError("disk full")):
        with pytest.raises(StorageError):
            controller.update_status(booking.id, "Cancelled")
    assert controller.get_booking(booking.id).status == BookingStatus.PENDING


def test_delete_requires_confirmation(controller, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)
    client = controller.add_client({"name": "Karim", "phone": "0600"})

    with pytest.raises(ConfirmationRequiredError):
        controller.delete_booking(booking.id)
    with pytest.raises(ConfirmationRequiredError):
        controller.delete_client(client.id)

    controller.delete_booking(booking.id, confirmed=True)
    controller.delete_client(client.id, confirmed=True)
    assert controller.bookings == ()
    assert controller.clients == ()


def test_contacts_crud(controller):
    colleague = controller.add_colleague({"name": "Sara", "email": "sara@mht.ma"})
    controller.update_colleague(colleague.id, {"position": "Manager"})
    partner = controller.add_partner({"companyName": "OCP", "contactPerson": "Youssef"})

    assert controller.colleagues[0].position == "Manager"
    assert controller.partners == (partner,)

    controller.delete_partner(partner.id, confirmed=True)
    controller.delete_colleague(colleague.id, confirmed=True)
    assert controller.partners == ()
    assert controller.colleagues == ()


def test_export_then_import_restores_state(controller, store, booking_fields, now):
    controller.add_booking(booking_fields, now=now)
    controller.add_client({"name": "Karim", "phone": "0600"})
    backup = controller.export_backup(now)

    controller.delete_booking(controller.bookings[0].id, confirmed=True)
    controller.update_profile({"name": "Someone else"})

    assert controller.import_backup(backup) is True
    assert len(controller.bookings) == 1
    assert controller.clients[0].name == "Karim"
    assert controller.profile == DEFAULT_PROFILE
    assert json.loads(backup)["profile"]["agencyName"] == "MHT Travel"


def test_import_is_all_or_nothing(controller, store, booking_fields, now):
    controller.add_booking(booking_fields, now=now)
    controller.add_client({"name": "Karim", "phone": "0600"})

    broken = json.dumps({"clients": [], "bookings": [{"id": "x"}]})
    assert controller.import_backup(broken) is False

    assert len(controller.bookings) == 1
    assert len(controller.clients) == 1
    assert len(store.load("clients")) == 1


def test_import_keeps_absent_collections(controller, booking_fields, now):
    controller.add_booking(booking_fields, now=now)
    partner = {"id": "p1", "companyName": "OCP", "contactPerson": "Youssef"}

    assert controller.import_backup({"partners": [partner]}) is True
    assert len(controller.bookings) == 1
    assert controller.partners[0].company_name == "OCP"


def test_dashboard_and_calendar(controller, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)

    stats, urgent = controller.dashboard(now)
    assert stats.urgent_count == 1
    assert urgent[0]["id"] == booking.id
    assert urgent[0]["hoursRemaining"] == "24h remaining"

    events = controller.calendar(now)
    assert [e.kind.value for e in events] == ["Deadline", "Travel"]

    stats, urgent = controller.dashboard(now + timedelta(days=2))
    assert urgent == []


def test_report_uses_filter(controller, booking_fields, now):
    controller.add_booking(booking_fields, now=now)
    report = controller.report(BookingFilter(search_text="abc"))
    assert report.rows[0][0] == "ABC123"
    with pytest.raises(NothingToExportError):
        controller.report(BookingFilter(status="Ticketed"))


def test_suggestions_and_broadcast(controller):
    assert controller.broadcast_link() is None
    controller.add_client({"name": "Karim", "phone": "0600", "email": "k@x.ma"})
    controller.add_colleague({"name": "Sara", "email": "sara@mht.ma"})

    assert controller.suggestions("Client", "kar") == ["Karim"]
    assert controller.suggestions("Colleague", "") == ["Sara"]
    assert controller.broadcast_link() == "mailto:?bcc=k@x.ma&subject=Announcement%20from%20MHT%20Travel"


def test_draft_message_is_signed_and_linked(controller, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)

    draft = controller.draft_message(booking.id, "offer", "friendly")

    assert draft["message"].startswith("Your seats are held.\n\nBest regards,\nTravel Agent Pro")
    assert draft["whatsapp_url"].startswith("https://wa.me/212661000111?text=Your%20seats")
    assert draft["notice"] is None


def test_draft_message_without_phone(controller, booking_fields, now):
    booking = controller.add_booking({**booking_fields, "passengers": [{"name": "Karim"}]}, now=now)
    draft = controller.draft_message(booking.id)
    assert draft["whatsapp_url"] is None
    assert draft["notice"] == NO_PHONE_MESSAGE


def test_open_draft_runs_in_background(controller, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)
    future = controller.open_draft(booking.id, "reminder", "urgent")
    assert future.result(timeout=5) == "Your seats are held."
    assert controller.drafts.latest == "Your seats are held."

    controller.close_draft()
    assert controller.drafts.active_key is None


def test_import_rejects_booking_without_passengers(controller, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)
    broken = {**booking.to_dict(), "id": "b2", "price": "1200", "passengers": []}

    assert controller.import_backup({"bookings": [broken]}) is False
    assert controller.bookings == (booking,)


def test_imported_price_text_counts_in_pipeline(controller, booking_fields, now):
    booking = controller.add_booking(booking_fields, now=now)
    record = {**booking.to_dict(), "price": "1200"}

    assert controller.import_backup({"bookings": [record]}) is True
    stats, _ = controller.dashboard(now)
    assert controller.bookings[0].price == 1200
    assert stats.pipeline_value == 1200
