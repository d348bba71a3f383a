"""
Enums for the bus terminal application.

Values match the names persisted in the status and benefit_type columns.
"""

from decimal import Decimal
from enum import Enum


class FlightStatus(str, Enum):
    """Scheduled journey status."""
    PLANNED = "PLANNED"
    DELAYED = "DELAYED"
    DEPARTED = "DEPARTED"
    ARRIVED = "ARRIVED"
    CANCELLED = "CANCELLED"

    @classmethod
    def bookable(cls) -> tuple:
        """Statuses that still accept new bookings."""
        return (cls.PLANNED, cls.DELAYED)


class TicketStatus(str, Enum):
    """Seat ticket lifecycle states."""
    BOOKED = "BOOKED"        # Held until booking_expiry_date_time
    SOLD = "SOLD"            # Paid, never expires
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    USED = "USED"            # Flight completed

    @classmethod
    def active(cls) -> tuple:
        """Statuses that occupy a seat."""
        return (cls.BOOKED, cls.SOLD)


class BenefitType(str, Enum):
    """Passenger discount categories."""
    NONE = "NONE"
    STUDENT = "STUDENT"
    PENSIONER = "PENSIONER"
    COMBATANT = "COMBATANT"

    @property
    def discount_rate(self) -> Decimal:
        return _DISCOUNT_RATES[self]


_DISCOUNT_RATES = {
    BenefitType.NONE: Decimal("0.00"),
    BenefitType.STUDENT: Decimal("0.20"),
    BenefitType.PENSIONER: Decimal("0.15"),
    BenefitType.COMBATANT: Decimal("0.50"),
}
