"""
Bus terminal Pydantic models package.

Domain entities validate their fields at construction time, before any
persistence attempt.
"""

from .enums import (
    FlightStatus,
    TicketStatus,
    BenefitType,
)

from .stop import (
    StopModel,
    RouteModel,
)

from .flight import FlightModel
from .passenger import PassengerModel
from .ticket import TicketModel

from .report import (
    RouteSalesEntry,
    FlightLoadEntry,
)

__all__ = [
    # Enums
    "FlightStatus",
    "TicketStatus",
    "BenefitType",

    # Core models
    "StopModel",
    "RouteModel",
    "FlightModel",
    "PassengerModel",
    "TicketModel",

    # Reports
    "RouteSalesEntry",
    "FlightLoadEntry",
]
