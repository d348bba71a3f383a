"""
Stop and route Pydantic models for the bus terminal application.

Stops are static boarding locations. A route is an ordered chain of stops:
departure, zero or more intermediate stops, destination. Both are immutable
once built; a route's intermediate sequence is replaced wholesale, never
mutated in place.
"""

from typing import Optional, Tuple, Iterable
from pydantic import BaseModel, Field, ConfigDict, field_validator

UNKNOWN_CITY = "Unknown"


class StopModel(BaseModel):
    """Boarding location."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[int] = Field(None, description="Persisted identity, None until stored")
    name: str = Field(..., max_length=100, description="Stop name")
    city: str = Field(..., max_length=100, description="City the stop belongs to")

    @field_validator("name", "city")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @property
    def is_persisted(self) -> bool:
        return self.id is not None and self.id > 0


class RouteModel(BaseModel):
    """
    Ordered path of stops.

    The intermediate stops are kept in physical traversal order. A route is
    created once through the route builder and treated as immutable after
    persistence.
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[int] = Field(None, description="Persisted identity, None until stored")
    departure_stop: StopModel
    destination_stop: StopModel
    intermediate_stops: Tuple[StopModel, ...] = Field(
        default=(), description="Intermediate stops in traversal order"
    )

    @property
    def stops(self) -> Tuple[StopModel, ...]:
        """All stops from departure to destination."""
        return (self.departure_stop, *self.intermediate_stops, self.destination_stop)

    @property
    def full_description(self) -> str:
        """Route as 'DepartureCity -> ... -> DestinationCity'."""
        return " -> ".join(stop.city or UNKNOWN_CITY for stop in self.stops)

    def with_intermediate_stops(self, stops: Iterable[StopModel]) -> "RouteModel":
        """Return a copy of this route with the intermediate sequence replaced."""
        return self.model_copy(update={"intermediate_stops": tuple(stops)})

    def with_id(self, route_id: int) -> "RouteModel":
        return self.model_copy(update={"id": route_id})

    def __str__(self) -> str:
        return f"Route {self.id}: {self.full_description}"
