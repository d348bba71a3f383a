"""
Composition root.

Configuration is loaded once by the caller and handed in here; every
service gets its collaborators from this single place.
"""

import logging
from dataclasses import dataclass

from .database.config import DatabaseConfig
from .services import (
    StopCatalog,
    RouteGraphBuilder,
    FlightScheduler,
    PassengerRegistry,
    ReservationEngine,
    ReportingAggregator,
)
from .utils.config import TerminalConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalServices:
    """Wired service bundle sharing one connection provider."""
    db: DatabaseConfig
    stops: StopCatalog
    routes: RouteGraphBuilder
    flights: FlightScheduler
    passengers: PassengerRegistry
    reservations: ReservationEngine
    reports: ReportingAggregator

    def close(self) -> None:
        self.db.close()


def build_services(config: TerminalConfig, db: DatabaseConfig = None) -> TerminalServices:
    """
    Wire all services for the given configuration.

    Args:
        config: Startup configuration
        db: Optional pre-built connection provider (tests pass an in-memory one)
    """
    if db is None:
        db = DatabaseConfig(database_url=config.database_url, echo=config.database_echo)

    stops = StopCatalog(db)
    routes = RouteGraphBuilder(db, stops)
    flights = FlightScheduler(db, routes)
    passengers = PassengerRegistry(db)
    reservations = ReservationEngine(
        db, flights, passengers, booking_hold_hours=config.booking_hold_hours
    )
    reports = ReportingAggregator(db, routes, flights)

    logger.info(f"Services wired ({db.db_type}, booking hold {config.booking_hold_hours}h)")
    return TerminalServices(
        db=db,
        stops=stops,
        routes=routes,
        flights=flights,
        passengers=passengers,
        reservations=reservations,
        reports=reports,
    )
