"""
Report row models produced by the reporting aggregator.
"""

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict


class RouteSalesEntry(BaseModel):
    """Sold-ticket totals for one route over a period."""
    model_config = ConfigDict(frozen=True)

    route_id: int
    route_description: str = Field(..., description="Route description or placeholder label")
    total_sales: Decimal = Field(..., ge=0)
    ticket_count: int = Field(..., ge=0)


class FlightLoadEntry(BaseModel):
    """Seat load of one flight."""
    model_config = ConfigDict(frozen=True)

    flight_id: int
    route_description: str
    departure_date_time: datetime
    total_seats: int = Field(..., gt=0)
    occupied_seats: int = Field(..., ge=0)
    load_percentage: Decimal = Field(..., ge=0, description="Occupied / total, in percent")
