import pytest
from datetime import datetime, timedelta

import pytz

import config
from app import create_app
from config import Config
from controller import AgencyController
from extensions import init_db, make_engine, make_session
from models import Booking, BookingCategory, BookingStatus, Passenger, TripType
from storage import EntityStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=pytz.utc)


class TestConfig(Config):
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"
    LOG_LEVEL = "WARNING"


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    # Nothing in the suite may reach the real text-generation endpoint
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", None)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
    app.extensions["agency"].drafts.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def db_session():
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    session = make_session(engine)
    yield session
    session.remove()
    engine.dispose()


@pytest.fixture
def store(db_session):
    return EntityStore(db_session)


@pytest.fixture
def controller(store):
    ctrl = AgencyController(store, draft_generator=lambda booking, message_type, tone: "Your seats are held.")
    yield ctrl
    ctrl.drafts.shutdown()


@pytest.fixture
def make_booking():
    """Factory for bookings relative to NOW."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = dict(
            id=f"b{counter['n']}",
            created_at=NOW - timedelta(days=1),
            category=BookingCategory.CLIENT,
            client_name="Karim Alaoui",
            passengers=[Passenger(name="Karim Alaoui", phone="+212 661-000-111")],
            route="CMN-CDG",
            trip_type=TripType.ROUND_TRIP,
            departure_date=NOW + timedelta(days=10),
            airline="Royal Air Maroc",
            price=4500,
            currency="MAD",
            pnr=f"PNR{counter['n']:03d}",
            ticketing_deadline=NOW + timedelta(hours=24),
            status=BookingStatus.PENDING,
        )
        values.update(overrides)
        return Booking(**values)

    return _make


@pytest.fixture
def booking_fields():
    return {
        "pnr": "abc123",
        "clientName": "Karim Alaoui",
        "passengers": [{"name": "Karim Alaoui", "phone": "+212661000111"}],
        "route": "cmn-cdg",
        "airline": "Royal Air Maroc",
        "price": "4500",
        "departureDate": "2024-06-11T08:00:00Z",
        "ticketingDeadline": "2024-06-02T12:00:00Z",
    }
