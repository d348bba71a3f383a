"""
Core services for the bus terminal.

Each service receives its connection provider and collaborators explicitly;
see busterminal.container for the wiring.
"""

from .stop_catalog import StopCatalog
from .route_builder import RouteGraphBuilder
from .flight_scheduler import FlightScheduler
from .passenger_registry import PassengerRegistry
from .reservation_engine import ReservationEngine, compute_fare, DEFAULT_BOOKING_HOLD_HOURS
from .reporting import ReportingAggregator, UNKNOWN_ROUTE_LABEL

__all__ = [
    'StopCatalog',
    'RouteGraphBuilder',
    'FlightScheduler',
    'PassengerRegistry',
    'ReservationEngine',
    'compute_fare',
    'DEFAULT_BOOKING_HOLD_HOURS',
    'ReportingAggregator',
    'UNKNOWN_ROUTE_LABEL',
]
