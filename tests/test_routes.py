import io
import json
from unittest.mock import patch

import pytest
from openpyxl import load_workbook

from app import create_app
from config import Config
from messaging import NOT_CONFIGURED_MESSAGE


def _create_booking(client, **overrides):
    payload = {
        "pnr": "abc123",
        "clientName": "Karim Alaoui",
        "passengers": [{"name": "Karim Alaoui", "phone": "+212661000111"}],
        "route": "cmn-cdg",
        "airline": "Royal Air Maroc",
        "price": 4500,
        "departureDate": "2099-06-11T08:00:00Z",
        "ticketingDeadline": "2099-06-02T12:00:00Z",
    }
    payload.update(overrides)
    return client.post("/api/bookings", json=payload)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json["status"] == "ok"


def test_create_and_list_bookings(client):
    response = _create_booking(client)
    assert response.status_code == 201
    booking = response.json["booking"]
    assert booking["pnr"] == "ABC123"
    assert booking["status"] == "Pending"

    _create_booking(client, pnr="zz9", category="Colleague", clientName="Atlas Voyages")

    listing = client.get("/api/bookings").json
    assert listing["count"] == 2
    assert listing["bookings"][0]["pnr"] == "ZZ9"

    filtered = client.get("/api/bookings?category=Client&search=karim").json
    assert [b["pnr"] for b in filtered["bookings"]] == ["ABC123"]


def test_create_booking_validation_error(client):
    response = client.post("/api/bookings", json={"pnr": "X"})
    assert response.status_code == 400
    assert "clientName" in response.json["fields"]

    response = client.post("/api/bookings", data="not json", content_type="text/plain")
    assert response.status_code == 400


@pytest.mark.parametrize("body", [[1, 2], "ABC123", 42])
def test_non_object_json_body_is_rejected(client, body):
    booking_id = _create_booking(client).json["booking"]["id"]

    for method, url in [
        (client.post, "/api/bookings"),
        (client.put, f"/api/bookings/{booking_id}/status"),
        (client.post, f"/api/bookings/{booking_id}/draft"),
        (client.post, "/api/clients"),
        (client.put, "/api/profile"),
    ]:
        response = method(url, json=body)
        assert response.status_code == 400, url
        assert response.json["error"] == "Request body must be a JSON object"


def test_numeric_pnr_is_accepted(client):
    response = _create_booking(client, pnr=123456)
    assert response.status_code == 201
    assert response.json["booking"]["pnr"] == "123456"


def test_update_status(client):
    booking_id = _create_booking(client).json["booking"]["id"]

    response = client.put(f"/api/bookings/{booking_id}/status", json={"status": "Optioned"})
    assert response.status_code == 200
    assert response.json["booking"]["status"] == "Optioned"

    assert client.put(f"/api/bookings/{booking_id}/status", json={}).status_code == 400
    assert client.put(f"/api/bookings/{booking_id}/status", json={"status": "Lost"}).status_code == 400
    assert client.put("/api/bookings/missing/status", json={"status": "Ticketed"}).status_code == 404


def test_delete_booking_needs_confirm(client):
    booking_id = _create_booking(client).json["booking"]["id"]

    assert client.delete(f"/api/bookings/{booking_id}").status_code == 409
    assert client.delete(f"/api/bookings/{booking_id}?confirm=true").status_code == 200
    assert client.get(f"/api/bookings/{booking_id}").status_code == 404


def test_export_bookings(client):
    response = client.get("/api/bookings/export")
    assert response.status_code == 400
    assert response.json["error"] == "No bookings to export."

    _create_booking(client)
    response = client.get("/api/bookings/export?status=Pending")
    assert response.status_code == 200
    assert "TravelPro_Bookings_" in response.headers["Content-Disposition"]
    ws = load_workbook(io.BytesIO(response.data))["Bookings"]
    assert ws["A5"].value == "ABC123"


def test_dashboard_and_calendar(client):
    _create_booking(client)
    dashboard = client.get("/api/dashboard").json
    assert dashboard["stats"]["total_active"] == 1
    assert dashboard["stats"]["pipeline_value"] == 4500
    assert dashboard["urgent"] == []

    events = client.get("/api/calendar").json["events"]
    assert [e["kind"] for e in events] == ["Deadline", "Travel"]


def test_clients_crud_and_suggestions(client):
    response = client.post("/api/clients", json={"name": "Karim", "phone": "0600", "email": "k@x.ma"})
    assert response.status_code == 201
    client_id = response.json["client"]["id"]

    assert client.post("/api/clients", json={"name": "No phone"}).status_code == 400

    response = client.put(f"/api/clients/{client_id}", json={"notes": "VIP"})
    assert response.json["client"]["notes"] == "VIP"
    assert client.put("/api/clients/missing", json={"notes": "x"}).status_code == 404

    assert client.get("/api/clients?search=kar").json["clients"][0]["id"] == client_id
    assert client.get("/api/suggestions?category=Client&q=ka").json["suggestions"] == ["Karim"]
    assert client.get("/api/clients/broadcast").json["mailto"].startswith("mailto:?bcc=k@x.ma")

    assert client.delete(f"/api/clients/{client_id}").status_code == 409
    assert client.delete(f"/api/clients/{client_id}?confirm=true").status_code == 200
    assert client.get("/api/clients/broadcast").status_code == 400


def test_colleagues_and_partners(client):
    response = client.post("/api/colleagues", json={"name": "Sara", "email": "sara@mht.ma"})
    assert response.status_code == 201
    colleague_id = response.json["colleague"]["id"]
    assert client.put(f"/api/colleagues/{colleague_id}", json={"position": "Manager"}).status_code == 200
    assert client.get("/api/colleagues").json["colleagues"][0]["position"] == "Manager"

    response = client.post("/api/partners", json={"companyName": "OCP", "contactPerson": "Youssef"})
    assert response.status_code == 201
    partner_id = response.json["partner"]["id"]
    assert client.delete(f"/api/partners/{partner_id}?confirm=true").status_code == 200
    assert client.get("/api/partners").json["partners"] == []


def test_profile(client):
    assert client.get("/api/profile").json["agencyName"] == "MHT Travel"
    response = client.put("/api/profile", json={"name": "Nadia"})
    assert response.json["profile"]["name"] == "Nadia"
    assert client.put("/api/profile", json={"name": ""}).status_code == 400


def test_backup_round_trip(client):
    _create_booking(client)
    response = client.get("/api/backup")
    assert response.status_code == 200
    assert "TravelPro_Backup_" in response.headers["Content-Disposition"]
    document = json.loads(response.data)
    assert document["version"] == "1.0.0"

    booking_id = document["bookings"][0]["id"]
    client.delete(f"/api/bookings/{booking_id}?confirm=true")

    response = client.post(
        "/api/backup",
        data={"file": (io.BytesIO(response.data), "backup.json")},
        content_type="multipart/form-data",
    )
    assert response.json == {"success": True}
    assert client.get("/api/bookings").json["count"] == 1


def test_backup_import_rejects_garbage(client):
    _create_booking(client)
    response = client.post("/api/backup", data="{broken", content_type="application/json")
    assert response.status_code == 400
    assert response.json["success"] is False
    assert client.get("/api/bookings").json["count"] == 1


def test_draft_without_api_key(client):
    booking_id = _create_booking(client).json["booking"]["id"]
    response = client.post(f"/api/bookings/{booking_id}/draft", json={"type": "reminder", "tone": "urgent"})
    assert response.status_code == 200
    assert response.json["message"].startswith(NOT_CONFIGURED_MESSAGE)
    assert response.json["whatsapp_url"].startswith("https://wa.me/212661000111")


def test_cli_export_and_import_backup(runner, tmp_path):
    path = tmp_path / "backup.json"
    result = runner.invoke(args=["export-backup", str(path)])
    assert result.exit_code == 0
    assert json.loads(path.read_text())["version"] == "1.0.0"

    result = runner.invoke(args=["import-backup", str(path)])
    assert result.exit_code == 0
    assert "Data imported successfully." in result.output

    bad = tmp_path / "bad.json"
    bad.write_text("[]")
    result = runner.invoke(args=["import-backup", str(bad)])
    assert result.exit_code != 0


def test_cli_export_report(client, runner, tmp_path):
    path = tmp_path / "report.xlsx"
    result = runner.invoke(args=["export-report", str(path)])
    assert result.exit_code != 0
    assert "No bookings to export." in result.output

    _create_booking(client)
    result = runner.invoke(args=["export-report", str(path), "--status", "Pending"])
    assert result.exit_code == 0
    assert load_workbook(path)["Bookings"]["A5"].value == "ABC123"


def test_cli_init_db(runner):
    result = runner.invoke(args=["init-db"])
    assert result.exit_code == 0
    assert "Store ready." in result.output


def test_draft_worker_stops_at_interpreter_exit():
    class MemoryConfig(Config):
        TESTING = True
        DATABASE_URL = "sqlite:///:memory:"
        LOG_LEVEL = "WARNING"

    with patch("app.atexit.register") as register:
        app = create_app(MemoryConfig)
    drafts = app.extensions["agency"].drafts
    register.assert_called_once_with(drafts.shutdown)
    drafts.shutdown()
