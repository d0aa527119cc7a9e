"""
TravelPro Desk - API Routes
REST API endpoints for bookings, contacts, the agent profile, backups
and message drafts. Single user: no authentication.
"""

import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from bookings import BookingNotFoundError, BookingValidationError, ConfirmationRequiredError
from contacts import ContactNotFoundError, ContactValidationError, search_clients
from queries import BookingFilter
from reports import NothingToExportError, render_xlsx, report_filename
from storage import StorageError, backup_filename

logger = logging.getLogger(__name__)

# Create blueprint
api = Blueprint("api", __name__, url_prefix="/api")


class RequestBodyError(ValueError):
    pass


# ==================== HELPER FUNCTIONS ====================

def get_controller():
    return current_app.extensions["agency"]


def is_confirmed():
    """Destructive calls must carry ?confirm=true."""
    return request.args.get("confirm", "").strip().lower() in ("1", "true", "yes")


def get_json_body(required=False):
    """The JSON object sent with the request; {} when optional and absent."""
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict) or (required and not data):
        raise RequestBodyError("Request body must be a JSON object")
    return data


@api.errorhandler(RequestBodyError)
@api.errorhandler(BookingValidationError)
@api.errorhandler(ContactValidationError)
def handle_validation_error(e):
    body = {"error": str(e)}
    if getattr(e, "fields", None):
        body["fields"] = e.fields
    return jsonify(body), 400


@api.errorhandler(BookingNotFoundError)
@api.errorhandler(ContactNotFoundError)
def handle_not_found(e):
    return jsonify({"error": str(e)}), 404


@api.errorhandler(ConfirmationRequiredError)
def handle_confirmation_required(e):
    return jsonify({"error": str(e)}), 409


@api.errorhandler(StorageError)
def handle_storage_error(e):
    logger.error("Storage failure: %s", e)
    return jsonify({"error": "Could not save changes"}), 500


# ==================== BOOKING ROUTES ====================

@api.route("/bookings", methods=["GET"])
def get_bookings():
    """List bookings, filtered by category, status and search text."""
    bookings = get_controller().list_bookings(BookingFilter.from_args(request.args))
    return jsonify({
        "bookings": [b.to_dict() for b in bookings],
        "count": len(bookings),
    })


@api.route("/bookings", methods=["POST"])
def create_booking():
    """Create a new booking."""
    data = get_json_body(required=True)
    booking = get_controller().add_booking(data)
    return jsonify({
        "message": "Booking created successfully",
        "booking": booking.to_dict(),
    }), 201


@api.route("/bookings/<booking_id>", methods=["GET"])
def get_booking(booking_id):
    return jsonify(get_controller().get_booking(booking_id).to_dict())


@api.route("/bookings/<booking_id>/status", methods=["PUT"])
def update_booking_status(booking_id):
    """Set a booking's status; any status may follow any other."""
    data = get_json_body()
    if not data.get("status"):
        return jsonify({"error": "Status is required"}), 400
    booking = get_controller().update_status(booking_id, data["status"])
    return jsonify({
        "message": "Status updated",
        "booking": booking.to_dict(),
    })


@api.route("/bookings/<booking_id>", methods=["DELETE"])
def delete_booking(booking_id):
    get_controller().delete_booking(booking_id, confirmed=is_confirmed())
    return jsonify({"message": "Booking deleted successfully"})


@api.route("/bookings/export", methods=["GET"])
def export_bookings():
    """Download the filtered booking list as an XLSX report."""
    controller = get_controller()
    try:
        report = controller.report(BookingFilter.from_args(request.args))
    except NothingToExportError as e:
        return jsonify({"error": str(e)}), 400

    return send_file(
        io.BytesIO(render_xlsx(report)),
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=report_filename(),
    )


@api.route("/bookings/<booking_id>/draft", methods=["POST"])
def draft_booking_message(booking_id):
    """Draft a signed client message for a booking, with a WhatsApp link."""
    data = get_json_body()
    draft = get_controller().draft_message(
        booking_id,
        message_type=data.get("type", "offer"),
        tone=data.get("tone", "professional"),
    )
    return jsonify(draft)


# ==================== DASHBOARD ROUTES ====================

@api.route("/dashboard", methods=["GET"])
def get_dashboard():
    stats, urgent = get_controller().dashboard()
    return jsonify({
        "stats": stats.to_dict(),
        "urgent": urgent,
    })


@api.route("/calendar", methods=["GET"])
def get_calendar():
    """Upcoming travel and deadline events, oldest first."""
    events = get_controller().calendar()
    return jsonify({"events": [e.to_dict() for e in events]})


@api.route("/suggestions", methods=["GET"])
def get_suggestions():
    names = get_controller().suggestions(
        request.args.get("category", "Client"),
        request.args.get("q", ""),
    )
    return jsonify({"suggestions": names})


# ==================== CLIENT ROUTES ====================

@api.route("/clients", methods=["GET"])
def get_clients():
    controller = get_controller()
    search = request.args.get("search", "").strip()
    if search:
        clients = search_clients(controller.clients, search)
    else:
        clients = controller.clients
    return jsonify({"clients": [c.to_dict() for c in clients]})


@api.route("/clients", methods=["POST"])
def create_client():
    data = get_json_body()
    client = get_controller().add_client(data)
    return jsonify({
        "message": "Client created successfully",
        "client": client.to_dict(),
    }), 201


@api.route("/clients/<client_id>", methods=["PUT"])
def update_client(client_id):
    data = get_json_body()
    client = get_controller().update_client(client_id, data)
    return jsonify({
        "message": "Client updated successfully",
        "client": client.to_dict(),
    })


@api.route("/clients/<client_id>", methods=["DELETE"])
def delete_client(client_id):
    get_controller().delete_client(client_id, confirmed=is_confirmed())
    return jsonify({"message": "Client deleted successfully"})


@api.route("/clients/broadcast", methods=["GET"])
def broadcast_clients():
    """One mailto link with every client e-mail as BCC."""
    link = get_controller().broadcast_link()
    if not link:
        return jsonify({"error": "No client emails found."}), 400
    return jsonify({"mailto": link})


# ==================== COLLEAGUE ROUTES ====================

@api.route("/colleagues", methods=["GET"])
def get_colleagues():
    return jsonify({"colleagues": [c.to_dict() for c in get_controller().colleagues]})


@api.route("/colleagues", methods=["POST"])
def create_colleague():
    data = get_json_body()
    colleague = get_controller().add_colleague(data)
    return jsonify({
        "message": "Colleague created successfully",
        "colleague": colleague.to_dict(),
    }), 201


@api.route("/colleagues/<colleague_id>", methods=["PUT"])
def update_colleague(colleague_id):
    data = get_json_body()
    colleague = get_controller().update_colleague(colleague_id, data)
    return jsonify({
        "message": "Colleague updated successfully",
        "colleague": colleague.to_dict(),
    })


@api.route("/colleagues/<colleague_id>", methods=["DELETE"])
def delete_colleague(colleague_id):
    get_controller().delete_colleague(colleague_id, confirmed=is_confirmed())
    return jsonify({"message": "Colleague deleted successfully"})


# ==================== PARTNER ROUTES ====================

@api.route("/partners", methods=["GET"])
def get_partners():
    return jsonify({"partners": [p.to_dict() for p in get_controller().partners]})


@api.route("/partners", methods=["POST"])
def create_partner():
    data = get_json_body()
    partner = get_controller().add_partner(data)
    return jsonify({
        "message": "Partner created successfully",
        "partner": partner.to_dict(),
    }), 201


@api.route("/partners/<partner_id>", methods=["DELETE"])
def delete_partner(partner_id):
    get_controller().delete_partner(partner_id, confirmed=is_confirmed())
    return jsonify({"message": "Partner deleted successfully"})


# ==================== PROFILE ROUTES ====================

@api.route("/profile", methods=["GET"])
def get_profile():
    return jsonify(get_controller().profile.to_dict())


@api.route("/profile", methods=["PUT"])
def update_profile():
    data = get_json_body()
    profile = get_controller().update_profile(data)
    return jsonify({
        "message": "Profile updated successfully",
        "profile": profile.to_dict(),
    })


# ==================== BACKUP ROUTES ====================

@api.route("/backup", methods=["GET"])
def export_backup():
    """Download every collection as one JSON document."""
    document = get_controller().export_backup()
    return send_file(
        io.BytesIO(document.encode("utf-8")),
        mimetype="application/json",
        as_attachment=True,
        download_name=backup_filename(),
    )


@api.route("/backup", methods=["POST"])
def import_backup():
    """Restore from an uploaded backup file or a JSON body."""
    upload = request.files.get("file")
    document = upload.read() if upload else request.get_data()
    if not document:
        return jsonify({"success": False, "error": "No backup provided"}), 400

    success = get_controller().import_backup(document)
    if not success:
        return jsonify({"success": False, "error": "Failed to import backup"}), 400
    return jsonify({"success": True})
