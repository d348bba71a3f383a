"""
Shared fixtures for the bus terminal test suite.

Most tests run against an in-memory SQLite database. Concurrency tests use a
file-backed database so that each thread gets its own connection.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from busterminal.container import build_services
from busterminal.database.config import DatabaseConfig
from busterminal.models import (
    BenefitType,
    FlightModel,
    FlightStatus,
    PassengerModel,
    RouteModel,
    StopModel,
)
from busterminal.services import ReservationEngine
from busterminal.utils.config import TerminalConfig

BOOKED_AT = datetime(2024, 6, 1, 10, 0, 0)


@pytest.fixture
def db_config():
    """Create an in-memory database with all tables."""
    config = DatabaseConfig(database_url="sqlite:///:memory:")
    config.create_tables()
    yield config
    config.close()


@pytest.fixture
def services(db_config):
    """All services wired against the in-memory database."""
    return build_services(TerminalConfig(), db=db_config)


@pytest.fixture
def file_services(tmp_path):
    """All services wired against a file-backed SQLite database."""
    db = DatabaseConfig(database_url=f"sqlite:///{tmp_path / 'terminal.db'}")
    db.create_tables()
    wired = build_services(TerminalConfig(), db=db)
    yield wired
    wired.close()


@pytest.fixture
def stops(services):
    """Four persisted stops in four cities."""
    return [
        services.stops.add_stop(StopModel(name="Central Station", city="Kyiv")),
        services.stops.add_stop(StopModel(name="Bus Depot", city="Zhytomyr")),
        services.stops.add_stop(StopModel(name="Market Square", city="Rivne")),
        services.stops.add_stop(StopModel(name="Main Terminal", city="Lviv")),
    ]


@pytest.fixture
def route(services, stops):
    """Kyiv -> Zhytomyr -> Rivne -> Lviv."""
    kyiv, zhytomyr, rivne, lviv = stops
    return services.routes.add_route(RouteModel(
        departure_stop=kyiv,
        destination_stop=lviv,
        intermediate_stops=(zhytomyr, rivne),
    ))


def make_flight(route, departure=datetime(2024, 6, 2, 8, 0), hours=6, seats=50, price="1000.00"):
    return FlightModel(
        route=route,
        departure_date_time=departure,
        arrival_date_time=departure + timedelta(hours=hours),
        total_seats=seats,
        status=FlightStatus.PLANNED,
        bus_model="Neoplan Cityliner",
        price_per_seat=Decimal(price),
    )


def make_passenger(document_number="AB123456", benefit_type=BenefitType.NONE, name="Olena Kovalenko"):
    return PassengerModel(
        full_name=name,
        document_type="PASSPORT",
        document_number=document_number,
        phone_number="+380501234567",
        email="olena@example.com",
        benefit_type=benefit_type,
    )


@pytest.fixture
def flight_factory():
    return make_flight


@pytest.fixture
def passenger_factory():
    return make_passenger


@pytest.fixture
def flight(services, route):
    """A 50-seat flight with a 1000.00 base fare."""
    return services.flights.add_flight(make_flight(route))


@pytest.fixture
def student(services):
    passenger = make_passenger(benefit_type=BenefitType.STUDENT)
    services.passengers.add_or_get_passenger(passenger)
    return passenger


@pytest.fixture
def reservations(services):
    """Reservation engine with a fixed clock."""
    return ReservationEngine(
        services.db,
        services.flights,
        services.passengers,
        clock=lambda: BOOKED_AT,
    )
