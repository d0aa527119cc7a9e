"""
TravelPro Desk - Flask application.
Builds the store and the controller, registers the API blueprint and the
command-line tools (init-db, export-backup, import-backup, export-report).
"""

import atexit
import logging

import click
from flask import Flask, jsonify

from config import Config
from controller import AgencyController
from extensions import init_db, make_engine, make_session
from logging_config import setup_logging
from queries import BookingFilter
from reports import NothingToExportError, render_xlsx
from storage import EntityStore

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    setup_logging(config_class.LOG_LEVEL)

    app = Flask(__name__)
    app.config.from_object(config_class)

    engine = make_engine(app.config["DATABASE_URL"])
    init_db(engine)
    db_session = make_session(engine)

    controller = AgencyController(
        EntityStore(db_session),
        urgent_window_hours=app.config["URGENT_WINDOW_HOURS"],
    )
    atexit.register(controller.drafts.shutdown)
    app.extensions["agency"] = controller
    app.extensions["db_engine"] = engine
    app.extensions["db_session"] = db_session

    # Register API Blueprint
    from routes import api
    app.register_blueprint(api)

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        db_session.remove()

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "bookings": len(controller.bookings)})

    register_commands(app)
    logger.info("TravelPro Desk ready (%s)", app.config["DATABASE_URL"])
    return app


# ==================== CLI COMMANDS ====================

def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """Create the store table."""
        init_db(app.extensions["db_engine"])
        click.echo("Store ready.")

    @app.cli.command("export-backup")
    @click.argument("path", type=click.Path(dir_okay=False, writable=True))
    def export_backup_command(path):
        """Write every collection to a JSON backup file."""
        with open(path, "w", encoding="utf-8") as f:
            f.write(app.extensions["agency"].export_backup())
        click.echo(f"Backup written to {path}")

    @app.cli.command("import-backup")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    def import_backup_command(path):
        """Replace the collections present in a JSON backup file."""
        with open(path, "rb") as f:
            success = app.extensions["agency"].import_backup(f.read())
        if not success:
            raise click.ClickException("Failed to import backup. Please check the file format.")
        click.echo("Data imported successfully.")

    @app.cli.command("export-report")
    @click.argument("path", type=click.Path(dir_okay=False, writable=True))
    @click.option("--category", default="All", help="Client, Colleague or All")
    @click.option("--status", default="All", help="Booking status or All")
    @click.option("--search", default="", help="Match PNR, client name or route")
    def export_report_command(path, category, status, search):
        """Write the filtered booking list as an XLSX report."""
        booking_filter = BookingFilter(category=category, status=status, search_text=search)
        try:
            report = app.extensions["agency"].report(booking_filter)
        except NothingToExportError as e:
            raise click.ClickException(str(e))
        with open(path, "wb") as f:
            f.write(render_xlsx(report))
        click.echo(f"Report with {len(report.rows)} bookings written to {path}")


if __name__ == "__main__":
    create_app().run(debug=True)
