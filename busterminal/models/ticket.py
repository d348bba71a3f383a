"""
Ticket Pydantic model for the bus terminal application.

A ticket is a claim on one seat of one flight for one passenger. The price
is frozen at booking time.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import TicketStatus
from .flight import FlightModel
from .passenger import PassengerModel


class TicketModel(BaseModel):
    """
    Seat ticket with its booking lifecycle timestamps.

    booking_expiry_date_time is only set while the ticket is BOOKED and
    purchase_date_time only once it is SOLD. Expiry is a passive value:
    use is_booking_expired() to evaluate it at read time.
    """
    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    id: Optional[int] = None
    flight_id: int = Field(..., description="Flight the seat belongs to")
    passenger_id: int = Field(..., description="Ticket holder")
    seat_number: str = Field(..., max_length=10, description="Seat label (e.g. 'A1')")
    booking_date_time: Optional[datetime] = None
    booking_expiry_date_time: Optional[datetime] = None
    purchase_date_time: Optional[datetime] = None
    price_paid: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    status: TicketStatus = TicketStatus.BOOKED

    # Populated by history queries
    flight: Optional[FlightModel] = None
    passenger: Optional[PassengerModel] = None

    @field_validator("seat_number")
    @classmethod
    def seat_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @property
    def is_active(self) -> bool:
        return self.status in TicketStatus.active()

    def is_booking_expired(self, now: Optional[datetime] = None) -> bool:
        """True when a BOOKED ticket's hold deadline has passed."""
        if self.status != TicketStatus.BOOKED or self.booking_expiry_date_time is None:
            return False
        return (now or datetime.now()) > self.booking_expiry_date_time
