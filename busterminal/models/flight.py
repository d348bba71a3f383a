"""
Flight-related Pydantic models for the bus terminal application.

A flight is one scheduled journey along a route. Seat occupancy is not part
of the model: it is always derived by counting active tickets.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

from .enums import FlightStatus
from .stop import RouteModel

logger = logging.getLogger(__name__)


class FlightModel(BaseModel):
    """
    Scheduled journey with fixed timing, capacity and fare.

    Construction and assignment both validate: route, timestamps and status
    are required, total seats must be positive and the price non-negative.
    A departure later than the arrival is logged as a warning only.
    """
    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    id: Optional[int] = None
    route: RouteModel = Field(..., description="Route travelled")
    departure_date_time: datetime = Field(..., description="Scheduled departure")
    arrival_date_time: datetime = Field(..., description="Scheduled arrival")
    total_seats: int = Field(..., gt=0, description="Seat capacity")
    status: FlightStatus = Field(..., description="Current flight status")
    bus_model: Optional[str] = Field(None, max_length=100, description="Bus model")
    price_per_seat: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Base fare")

    @model_validator(mode="after")
    def warn_departure_after_arrival(self) -> "FlightModel":
        if self.departure_date_time > self.arrival_date_time:
            logger.warning(
                f"Flight {self.id}: departure {self.departure_date_time} "
                f"is later than arrival {self.arrival_date_time}"
            )
        return self

    def available_seats(self, occupied: int) -> int:
        """Seats left given an occupied count from the scheduler."""
        return max(self.total_seats - occupied, 0)
