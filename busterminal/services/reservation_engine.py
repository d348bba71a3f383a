"""
Reservation engine: seat tickets and their lifecycle.

State machine:

    (none) --add_ticket()--> BOOKED --mark_sold()--> SOLD --(flight completes)--> USED
                               |  \\                           \\
                               |   \\--cancel()-----------------\\--> CANCELLED
                               \\------(deadline passes, observed lazily)--> EXPIRED

Seat uniqueness per flight is enforced by the uq_ticket_flight_seat_active
index. Callers are independent sessions with no shared memory, so the
storage engine decides who got a seat first: a losing insert is reported
as False, not raised. The engine does not check that a requested status
transition is legal for the ticket's current state.

Expiry is passive. A BOOKED ticket whose deadline has passed stays BOOKED in
storage until something rewrites it; nothing sweeps.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..database.config import DatabaseConfig
from ..database.errors import is_unique_violation, translate_errors
from ..database.models import Flight, Ticket, TICKET_SEAT_CONSTRAINT
from ..exceptions import PersistenceError
from ..models.enums import BenefitType, FlightStatus, TicketStatus
from ..models.flight import FlightModel
from ..models.passenger import PassengerModel
from ..models.ticket import TicketModel
from .flight_scheduler import FlightScheduler
from .passenger_registry import PassengerRegistry

logger = logging.getLogger(__name__)

DEFAULT_BOOKING_HOLD_HOURS = 24

_CENTS = Decimal("0.01")
_SEAT_COLUMNS = ("flight_id", "seat_number")


def compute_fare(base_price: Decimal, benefit_type: BenefitType) -> Decimal:
    """
    Final fare after the passenger's benefit discount.

    base_price * (1 - discount_rate), rounded half-up to 2 decimals.
    """
    base = Decimal(str(base_price))
    rate = BenefitType(benefit_type).discount_rate
    return (base * (Decimal("1") - rate)).quantize(_CENTS, rounding=ROUND_HALF_UP)


class ReservationEngine:
    """
    Creates tickets against (flight, seat) and moves them through their lifecycle.

    Not-found and seat-taken outcomes are returned as False/None; storage
    failures raise PersistenceError.
    """

    def __init__(
        self,
        db: DatabaseConfig,
        flight_scheduler: FlightScheduler,
        passenger_registry: PassengerRegistry,
        booking_hold_hours: int = DEFAULT_BOOKING_HOLD_HOURS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            db: Connection provider
            flight_scheduler: Used for occupancy and history reconstruction
            passenger_registry: Used for history reconstruction
            booking_hold_hours: How long a BOOKED ticket holds its seat
            clock: Source of "now"; injectable for tests
        """
        self.db = db
        self.flight_scheduler = flight_scheduler
        self.passenger_registry = passenger_registry
        self.booking_hold = timedelta(hours=booking_hold_hours)
        self.clock = clock

    def book_seat(self, flight: FlightModel, passenger: PassengerModel, seat_number: str) -> Optional[TicketModel]:
        """
        Book a seat, freezing the fare for the passenger's current benefit type.

        The stored flight must be PLANNED or DELAYED and must have a free
        seat left. Seat labels are free-form; capacity is checked against
        the derived occupancy count.

        Returns:
            The BOOKED ticket, or None if the flight does not accept bookings,
            is full, or the seat is already taken
        """
        if flight.id is None or passenger.id is None:
            raise ValueError("Flight and passenger must be persisted before booking")

        stored = self.flight_scheduler.get_flight_by_id(flight.id)
        if stored is None:
            logger.warning(f"Flight {flight.id} not found, seat {seat_number} not booked")
            return None
        if stored.status not in FlightStatus.bookable():
            logger.warning(
                f"Flight {flight.id} is {stored.status.value}, seat {seat_number} not booked"
            )
            return None

        # Capacity is not arbitrated by storage: two bookings of different
        # seats racing for the last free one can both pass this check.
        occupied = self.flight_scheduler.get_occupied_seats_count(flight.id)
        if occupied >= stored.total_seats:
            logger.warning(f"Flight {flight.id} is full ({occupied}/{stored.total_seats} seats)")
            return None

        ticket = TicketModel(
            flight_id=flight.id,
            passenger_id=passenger.id,
            seat_number=seat_number,
            price_paid=compute_fare(flight.price_per_seat, passenger.benefit_type),
        )
        return ticket if self.add_ticket(ticket) else None

    def add_ticket(self, ticket: TicketModel) -> bool:
        """
        Insert a BOOKED ticket for (flight, seat).

        On success the ticket is stamped with status BOOKED, booking time now,
        an expiry deadline now + hold period and its generated id. A refused
        or failed insert leaves the ticket untouched.

        Returns:
            False when the seat already has an active ticket on this flight
        """
        booked_at = self.clock()
        expires_at = booked_at + self.booking_hold

        try:
            with self.db.get_session_context() as session:
                row = Ticket(
                    flight_id=ticket.flight_id,
                    passenger_id=ticket.passenger_id,
                    seat_number=ticket.seat_number,
                    booking_date_time=booked_at,
                    booking_expiry_date_time=expires_at,
                    purchase_date_time=None,
                    price_paid=ticket.price_paid,
                    status=TicketStatus.BOOKED.value,
                )
                session.add(row)
                session.flush()
                ticket_id = row.id
        except IntegrityError as e:
            if is_unique_violation(e, TICKET_SEAT_CONSTRAINT, "tickets", _SEAT_COLUMNS):
                logger.warning(
                    f"Seat {ticket.seat_number} on flight {ticket.flight_id} is already taken"
                )
                return False
            logger.error(f"Failed to add ticket for seat {ticket.seat_number} on flight {ticket.flight_id}: {e}")
            raise PersistenceError(f"Failed to add ticket: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to add ticket for seat {ticket.seat_number} on flight {ticket.flight_id}: {e}")
            raise PersistenceError(f"Failed to add ticket: {e}") from e

        ticket.id = ticket_id
        ticket.status = TicketStatus.BOOKED
        ticket.booking_date_time = booked_at
        ticket.booking_expiry_date_time = expires_at
        ticket.purchase_date_time = None
        logger.info(
            f"Ticket {ticket_id} booked: flight={ticket.flight_id}, seat={ticket.seat_number}, "
            f"price={ticket.price_paid}, expires={expires_at}"
        )
        return True

    def update_ticket_status(
        self,
        ticket_id: int,
        new_status: TicketStatus,
        purchase_date_time: Optional[datetime] = None,
    ) -> bool:
        """
        Write a new status for a ticket.

        SOLD stamps the purchase time and clears the expiry deadline.
        CANCELLED clears the expiry deadline. Any other status updates the
        status column only.

        Returns:
            False when no ticket has this id

        Raises:
            ValueError: SOLD requested without a purchase time
        """
        new_status = TicketStatus(new_status)
        values = {"status": new_status.value}
        if new_status == TicketStatus.SOLD:
            if purchase_date_time is None:
                raise ValueError("A purchase time is required to mark a ticket SOLD")
            values["purchase_date_time"] = purchase_date_time
            values["booking_expiry_date_time"] = None
        elif new_status == TicketStatus.CANCELLED:
            values["booking_expiry_date_time"] = None

        with translate_errors(f"update status of ticket {ticket_id}"):
            with self.db.get_session_context() as session:
                result = session.execute(update(Ticket).where(Ticket.id == ticket_id).values(**values))
                updated = result.rowcount > 0

        if updated:
            logger.info(f"Ticket {ticket_id} status set to {new_status.value}")
        else:
            logger.warning(f"Ticket {ticket_id} not found, status not updated")
        return updated

    def mark_sold(self, ticket_id: int, purchase_date_time: Optional[datetime] = None) -> bool:
        """Sell a booked ticket; purchase time defaults to now."""
        return self.update_ticket_status(ticket_id, TicketStatus.SOLD, purchase_date_time or self.clock())

    def cancel(self, ticket_id: int) -> bool:
        return self.update_ticket_status(ticket_id, TicketStatus.CANCELLED)

    def get_ticket_by_id(self, ticket_id: int) -> Optional[TicketModel]:
        with translate_errors(f"load ticket {ticket_id}"):
            with self.db.get_session_context() as session:
                row = session.get(Ticket, ticket_id)
                return self._to_model(row) if row is not None else None

    def get_all_tickets(self, status_filter: Optional[TicketStatus] = None) -> List[TicketModel]:
        """All tickets, newest booking first, optionally restricted to one status."""
        query = select(Ticket).order_by(Ticket.booking_date_time.desc(), Ticket.id.desc())
        if status_filter is not None:
            query = query.where(Ticket.status == TicketStatus(status_filter).value)

        with translate_errors("load tickets"):
            with self.db.get_session_context() as session:
                tickets = [self._to_model(row) for row in session.scalars(query).all()]

        logger.debug(
            f"Loaded {len(tickets)} tickets (status filter: "
            f"{status_filter.value if status_filter else 'none'})"
        )
        return tickets

    def get_tickets_by_passenger_id(self, passenger_id: int) -> List[TicketModel]:
        """
        Travel history of a passenger, latest departure first.

        Each ticket carries its flight and passenger. An unknown passenger
        has no history: the result is empty.
        """
        passenger = self.passenger_registry.find_by_id(passenger_id)
        if passenger is None:
            logger.info(f"Passenger {passenger_id} not found, no travel history")
            return []

        with translate_errors(f"load tickets of passenger {passenger_id}"):
            with self.db.get_session_context() as session:
                rows = session.scalars(
                    select(Ticket)
                    .join(Flight, Ticket.flight_id == Flight.id)
                    .where(Ticket.passenger_id == passenger_id)
                    .order_by(Flight.departure_date_time.desc(), Ticket.id.desc())
                ).all()
                tickets = [self._to_model(row) for row in rows]

        flights = {}
        for ticket in tickets:
            if ticket.flight_id not in flights:
                flights[ticket.flight_id] = self.flight_scheduler.get_flight_by_id(ticket.flight_id)
            ticket.flight = flights[ticket.flight_id]
            ticket.passenger = passenger

        logger.debug(f"Passenger {passenger_id}: {len(tickets)} tickets in history")
        return tickets

    def get_occupied_seats_for_flight(self, flight_id: int) -> List[str]:
        return self.flight_scheduler.get_occupied_seats_for_flight(flight_id)

    @staticmethod
    def _to_model(row: Ticket) -> TicketModel:
        return TicketModel(
            id=row.id,
            flight_id=row.flight_id,
            passenger_id=row.passenger_id,
            seat_number=row.seat_number,
            booking_date_time=row.booking_date_time,
            booking_expiry_date_time=row.booking_expiry_date_time,
            purchase_date_time=row.purchase_date_time,
            price_paid=row.price_paid,
            status=row.status,
        )
