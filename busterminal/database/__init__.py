"""
Database package for the bus terminal system.

This package provides SQLAlchemy models and the connection provider used by
the core services.
"""

from .models import (
    Base,
    Stop,
    Route,
    RouteIntermediateStop,
    Flight,
    Passenger,
    Ticket,
    PASSENGER_DOCUMENT_CONSTRAINT,
    TICKET_SEAT_CONSTRAINT,
    create_all_tables,
    drop_all_tables
)

from .config import DatabaseConfig

from .errors import is_unique_violation, translate_errors

__all__ = [
    # Models
    'Base',
    'Stop',
    'Route',
    'RouteIntermediateStop',
    'Flight',
    'Passenger',
    'Ticket',
    'PASSENGER_DOCUMENT_CONSTRAINT',
    'TICKET_SEAT_CONSTRAINT',
    'create_all_tables',
    'drop_all_tables',

    # Configuration
    'DatabaseConfig',

    # Error interpretation
    'is_unique_violation',
    'translate_errors',
]
