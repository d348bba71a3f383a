"""
Flight scheduler: flight records and derived seat occupancy.

Occupancy is never stored. Counting tickets in BOOKED or SOLD state is the
only authoritative seat-availability signal.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from sqlalchemy import func, select, update

from ..database.config import DatabaseConfig
from ..database.errors import translate_errors
from ..database.models import Flight, Ticket
from ..exceptions import DataIntegrityError
from ..models.enums import FlightStatus, TicketStatus
from ..models.flight import FlightModel
from .route_builder import RouteGraphBuilder

logger = logging.getLogger(__name__)

ACTIVE_TICKET_STATUSES = [status.value for status in TicketStatus.active()]


class FlightScheduler:
    """
    Persists flights and answers occupancy questions.

    Updates report a missing row as False, distinct from a raised
    PersistenceError. Flight reconstruction resolves the route through the
    route builder; a route that does not resolve is a DataIntegrityError.
    """

    def __init__(self, db: DatabaseConfig, route_builder: RouteGraphBuilder):
        self.db = db
        self.route_builder = route_builder

    def add_flight(self, flight: FlightModel) -> FlightModel:
        """Persist a new flight and populate its generated id."""
        if flight.route.id is None:
            raise ValueError("Flight route must be persisted before scheduling a flight")

        with translate_errors("add flight"):
            with self.db.get_session_context() as session:
                row = Flight(route_id=flight.route.id, **self._mutable_columns(flight))
                session.add(row)
                session.flush()
                flight_id = row.id

        flight.id = flight_id
        logger.info(
            f"Flight added: id={flight_id}, route={flight.route.id}, "
            f"departure={flight.departure_date_time}, seats={flight.total_seats}"
        )
        return flight

    def update_flight(self, flight: FlightModel) -> bool:
        """Replace every mutable field of a stored flight."""
        if flight.id is None:
            raise ValueError("Cannot update a flight without an id")
        if flight.route.id is None:
            raise ValueError("Flight route must be persisted")

        with translate_errors(f"update flight {flight.id}"):
            with self.db.get_session_context() as session:
                result = session.execute(
                    update(Flight)
                    .where(Flight.id == flight.id)
                    .values(route_id=flight.route.id, **self._mutable_columns(flight))
                )
                updated = result.rowcount > 0

        if updated:
            logger.info(f"Flight {flight.id} updated")
        else:
            logger.warning(f"Flight {flight.id} not found, nothing updated")
        return updated

    def update_flight_status(self, flight_id: int, status: FlightStatus) -> bool:
        """Update the status column only."""
        with translate_errors(f"update status of flight {flight_id}"):
            with self.db.get_session_context() as session:
                result = session.execute(
                    update(Flight).where(Flight.id == flight_id).values(status=FlightStatus(status).value)
                )
                updated = result.rowcount > 0

        if updated:
            logger.info(f"Flight {flight_id} status set to {FlightStatus(status).value}")
        else:
            logger.warning(f"Flight {flight_id} not found, status not updated")
        return updated

    def get_flight_by_id(self, flight_id: int) -> Optional[FlightModel]:
        with translate_errors(f"load flight {flight_id}"):
            with self.db.get_session_context() as session:
                rows = session.scalars(select(Flight).where(Flight.id == flight_id)).all()
        if not rows:
            logger.debug(f"Flight {flight_id} not found")
            return None
        return self._to_models(rows)[0]

    def get_all_flights(self) -> List[FlightModel]:
        """All flights, latest departure first."""
        with translate_errors("load flights"):
            with self.db.get_session_context() as session:
                rows = session.scalars(
                    select(Flight).order_by(Flight.departure_date_time.desc())
                ).all()
        return self._to_models(rows)

    def get_flights_by_date(self, day: date) -> List[FlightModel]:
        """Flights departing on the given calendar day, earliest first."""
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        with translate_errors(f"load flights for {day}"):
            with self.db.get_session_context() as session:
                rows = session.scalars(
                    select(Flight)
                    .where(Flight.departure_date_time >= start, Flight.departure_date_time < end)
                    .order_by(Flight.departure_date_time)
                ).all()
        flights = self._to_models(rows)
        logger.debug(f"Found {len(flights)} flights on {day}")
        return flights

    def get_occupied_seats_count(self, flight_id: int) -> int:
        """Number of tickets holding a seat (BOOKED or SOLD) on the flight."""
        with translate_errors(f"count occupied seats of flight {flight_id}"):
            with self.db.get_session_context() as session:
                count = session.scalar(
                    select(func.count(Ticket.id)).where(
                        Ticket.flight_id == flight_id,
                        Ticket.status.in_(ACTIVE_TICKET_STATUSES),
                    )
                )
        return int(count or 0)

    def get_occupied_seats_for_flight(self, flight_id: int) -> List[str]:
        """Seat numbers held by BOOKED or SOLD tickets on the flight."""
        with translate_errors(f"list occupied seats of flight {flight_id}"):
            with self.db.get_session_context() as session:
                seats = session.scalars(
                    select(Ticket.seat_number)
                    .where(
                        Ticket.flight_id == flight_id,
                        Ticket.status.in_(ACTIVE_TICKET_STATUSES),
                    )
                    .order_by(Ticket.seat_number)
                ).all()
        logger.debug(f"Flight {flight_id}: {len(seats)} occupied seats")
        return list(seats)

    @staticmethod
    def _mutable_columns(flight: FlightModel) -> dict:
        return {
            "departure_date_time": flight.departure_date_time,
            "arrival_date_time": flight.arrival_date_time,
            "total_seats": flight.total_seats,
            "bus_model": flight.bus_model,
            "price_per_seat": flight.price_per_seat,
            "status": flight.status.value,
        }

    def _to_models(self, rows: List[Flight]) -> List[FlightModel]:
        routes = self.route_builder.get_routes_by_ids(row.route_id for row in rows)
        flights = []
        for row in rows:
            route = routes.get(row.route_id)
            if route is None:
                message = f"Route {row.route_id} referenced by flight {row.id} does not exist"
                logger.error(message)
                raise DataIntegrityError(message)
            flights.append(FlightModel(
                id=row.id,
                route=route,
                departure_date_time=row.departure_date_time,
                arrival_date_time=row.arrival_date_time,
                total_seats=row.total_seats,
                status=row.status,
                bus_model=row.bus_model,
                price_per_seat=row.price_per_seat,
            ))
        return flights
