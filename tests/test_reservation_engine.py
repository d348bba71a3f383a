"""
Test suite for the reservation engine.

Covers fare computation, the booking hold, seat uniqueness under
contention and the SOLD/CANCELLED transitions.
"""

import threading
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from busterminal.database.models import Ticket
from busterminal.exceptions import PersistenceError
from busterminal.models import BenefitType, FlightStatus, RouteModel, StopModel, TicketModel, TicketStatus
from busterminal.services import ReservationEngine, compute_fare

BOOKED_AT = datetime(2024, 6, 1, 10, 0, 0)


def _ticket_rows(db):
    with db.get_session_context() as session:
        return session.scalar(select(func.count(Ticket.id)))


class TestComputeFare:
    """Test cases for fare computation."""

    @pytest.mark.parametrize("benefit, expected", [
        (BenefitType.STUDENT, Decimal("800.00")),
        (BenefitType.PENSIONER, Decimal("850.00")),
        (BenefitType.COMBATANT, Decimal("500.00")),
        (BenefitType.NONE, Decimal("1000.00")),
    ])
    def test_discounts(self, benefit, expected):
        assert compute_fare(Decimal("1000.00"), benefit) == expected

    @pytest.mark.parametrize("benefit", list(BenefitType))
    def test_free_fare_stays_free(self, benefit):
        assert compute_fare(Decimal("0.00"), benefit) == Decimal("0.00")

    def test_rounds_half_up_to_cents(self):
        """Test the fare is quantized to two decimals, half up."""
        # 0.85 * 10.10 = 8.585
        assert compute_fare(Decimal("10.10"), BenefitType.PENSIONER) == Decimal("8.59")
        assert compute_fare(Decimal("0.01"), BenefitType.COMBATANT) == Decimal("0.01")

    def test_accepts_stored_benefit_name(self):
        assert compute_fare(Decimal("200.00"), "STUDENT") == Decimal("160.00")


class TestBooking:
    """Test cases for creating tickets."""

    def test_end_to_end_student_booking(self, reservations, flight, student):
        """Test booking A1 on a 1000.00 flight for a student."""
        ticket = reservations.book_seat(flight, student, "A1")

        assert ticket is not None
        assert ticket.id is not None
        assert ticket.status == TicketStatus.BOOKED
        assert ticket.price_paid == Decimal("800.00")
        assert ticket.booking_date_time == BOOKED_AT
        assert ticket.booking_expiry_date_time == BOOKED_AT + timedelta(hours=24)
        assert ticket.purchase_date_time is None

        stored = reservations.get_ticket_by_id(ticket.id)
        assert stored.status == TicketStatus.BOOKED
        assert stored.price_paid == Decimal("800.00")
        assert stored.booking_expiry_date_time == BOOKED_AT + timedelta(hours=24)

    def test_second_booking_of_same_seat_is_refused(self, services, reservations, flight, student, passenger_factory):
        """Test a taken seat is reported as None and no second row is created."""
        assert reservations.book_seat(flight, student, "A1") is not None

        other = passenger_factory("XY999999")
        services.passengers.add_or_get_passenger(other)

        assert reservations.book_seat(flight, other, "A1") is None
        assert _ticket_rows(services.db) == 1
        assert reservations.get_occupied_seats_for_flight(flight.id) == ["A1"]

    def test_add_ticket_reports_taken_seat_as_false(self, reservations, flight, student):
        first = TicketModel(flight_id=flight.id, passenger_id=student.id, seat_number="B2", price_paid=Decimal("10.00"))
        second = TicketModel(flight_id=flight.id, passenger_id=student.id, seat_number="B2", price_paid=Decimal("10.00"))

        assert reservations.add_ticket(first) is True
        assert reservations.add_ticket(second) is False
        assert second.id is None

    def test_refused_ticket_is_left_untouched(self, reservations, flight, student):
        """Test a losing insert does not stamp booking fields on the caller's ticket."""
        reservations.book_seat(flight, student, "B2")
        loser = TicketModel(
            flight_id=flight.id,
            passenger_id=student.id,
            seat_number="B2",
            price_paid=Decimal("10.00"),
            status=TicketStatus.CANCELLED,
        )

        assert reservations.add_ticket(loser) is False
        assert loser.id is None
        assert loser.status == TicketStatus.CANCELLED
        assert loser.booking_date_time is None
        assert loser.booking_expiry_date_time is None

    def test_full_flight_refuses_booking(self, services, reservations, route, student, flight_factory):
        """Test bookings stop once every seat is held, whatever the seat label."""
        small = services.flights.add_flight(flight_factory(route, seats=1))

        assert reservations.book_seat(small, student, "1") is not None
        assert reservations.book_seat(small, student, "2") is None
        assert reservations.book_seat(small, student, "999") is None
        assert services.flights.get_occupied_seats_count(small.id) == 1

    def test_cancelled_seat_frees_capacity(self, services, reservations, route, student, flight_factory):
        small = services.flights.add_flight(flight_factory(route, seats=1))
        first = reservations.book_seat(small, student, "1")
        reservations.cancel(first.id)

        assert reservations.book_seat(small, student, "1") is not None

    @pytest.mark.parametrize("status", [FlightStatus.CANCELLED, FlightStatus.DEPARTED, FlightStatus.ARRIVED])
    def test_closed_flight_refuses_booking(self, services, reservations, flight, student, status):
        """Test the stored flight status decides, not the caller's copy."""
        services.flights.update_flight_status(flight.id, status)

        assert reservations.book_seat(flight, student, "A1") is None
        assert _ticket_rows(services.db) == 0

    def test_delayed_flight_accepts_booking(self, services, reservations, flight, student):
        services.flights.update_flight_status(flight.id, FlightStatus.DELAYED)
        assert reservations.book_seat(flight, student, "A1") is not None

    def test_unknown_flight_refuses_booking(self, reservations, flight, student):
        flight.id = 9999
        assert reservations.book_seat(flight, student, "A1") is None

    def test_add_ticket_overrides_caller_lifecycle_fields(self, reservations, flight, student):
        """Test a new ticket always starts BOOKED with a fresh hold."""
        ticket = TicketModel(
            flight_id=flight.id,
            passenger_id=student.id,
            seat_number="C3",
            price_paid=Decimal("10.00"),
            status=TicketStatus.SOLD,
            purchase_date_time=datetime(2020, 1, 1),
        )
        assert reservations.add_ticket(ticket) is True

        stored = reservations.get_ticket_by_id(ticket.id)
        assert stored.status == TicketStatus.BOOKED
        assert stored.purchase_date_time is None
        assert stored.booking_expiry_date_time == BOOKED_AT + timedelta(hours=24)

    def test_hold_period_is_configurable(self, services, flight, student):
        engine = ReservationEngine(
            services.db, services.flights, services.passengers,
            booking_hold_hours=2, clock=lambda: BOOKED_AT,
        )
        ticket = engine.book_seat(flight, student, "D4")
        assert ticket.booking_expiry_date_time == BOOKED_AT + timedelta(hours=2)

    def test_fare_is_frozen_at_booking(self, services, reservations, flight, student):
        """Test later benefit or price changes do not touch an issued ticket."""
        ticket = reservations.book_seat(flight, student, "A1")

        student.benefit_type = BenefitType.NONE
        services.passengers.update_passenger(student)
        flight.price_per_seat = Decimal("2000.00")
        services.flights.update_flight(flight)

        assert reservations.get_ticket_by_id(ticket.id).price_paid == Decimal("800.00")

    def test_booking_requires_persisted_entities(self, reservations, flight, passenger_factory):
        with pytest.raises(ValueError):
            reservations.book_seat(flight, passenger_factory(), "A1")

    def test_unknown_flight_is_a_persistence_error(self, reservations, student):
        """Test a foreign key failure is not mistaken for a taken seat."""
        ticket = TicketModel(flight_id=9999, passenger_id=student.id, seat_number="A1", price_paid=Decimal("1.00"))
        with pytest.raises(PersistenceError) as excinfo:
            reservations.add_ticket(ticket)
        assert isinstance(excinfo.value.__cause__, IntegrityError)

    def test_storage_failure_is_a_persistence_error(self, services, reservations, flight, student):
        failure = OperationalError("INSERT", {}, Exception("database is locked"))
        with patch.object(services.db, 'get_session', side_effect=failure):
            with pytest.raises(PersistenceError):
                reservations.book_seat(flight, student, "A1")

    def test_concurrent_booking_yields_one_success(self, file_services, passenger_factory, flight_factory):
        """Test concurrent attempts on the same seat produce exactly one ticket."""
        kyiv = file_services.stops.add_stop(StopModel(name="Central Station", city="Kyiv"))
        lviv = file_services.stops.add_stop(StopModel(name="Main Terminal", city="Lviv"))
        file_route = file_services.routes.add_route(RouteModel(departure_stop=kyiv, destination_stop=lviv))
        flight = file_services.flights.add_flight(flight_factory(file_route))

        workers = 8
        passengers = []
        for i in range(workers):
            passenger = passenger_factory(f"DOC{i:04d}")
            file_services.passengers.add_or_get_passenger(passenger)
            passengers.append(passenger)

        barrier = threading.Barrier(workers)

        def attempt(passenger):
            barrier.wait()
            return file_services.reservations.book_seat(flight, passenger, "A1")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(attempt, passengers))

        assert sum(1 for ticket in results if ticket is not None) == 1
        assert file_services.flights.get_occupied_seats_count(flight.id) == 1
        assert len(file_services.reservations.get_all_tickets()) == 1


class TestStatusTransitions:
    """Test cases for ticket lifecycle transitions."""

    @pytest.fixture
    def ticket(self, reservations, flight, student):
        return reservations.book_seat(flight, student, "A1")

    def test_mark_sold_sets_purchase_and_clears_expiry(self, reservations, ticket):
        purchased = BOOKED_AT + timedelta(hours=3)
        assert reservations.mark_sold(ticket.id, purchased) is True

        sold = reservations.get_ticket_by_id(ticket.id)
        assert sold.status == TicketStatus.SOLD
        assert sold.purchase_date_time == purchased
        assert sold.booking_expiry_date_time is None
        assert not sold.is_booking_expired(datetime(2030, 1, 1))

    def test_mark_sold_defaults_to_now(self, reservations, ticket):
        reservations.mark_sold(ticket.id)
        assert reservations.get_ticket_by_id(ticket.id).purchase_date_time == BOOKED_AT

    def test_sold_requires_purchase_time(self, reservations, ticket):
        with pytest.raises(ValueError):
            reservations.update_ticket_status(ticket.id, TicketStatus.SOLD)
        assert reservations.get_ticket_by_id(ticket.id).status == TicketStatus.BOOKED

    def test_cancel_clears_expiry(self, reservations, ticket):
        assert reservations.cancel(ticket.id) is True

        cancelled = reservations.get_ticket_by_id(ticket.id)
        assert cancelled.status == TicketStatus.CANCELLED
        assert cancelled.booking_expiry_date_time is None
        assert cancelled.purchase_date_time is None

    def test_cancel_after_sale_keeps_purchase_time(self, reservations, ticket):
        reservations.mark_sold(ticket.id, BOOKED_AT)
        reservations.cancel(ticket.id)

        cancelled = reservations.get_ticket_by_id(ticket.id)
        assert cancelled.status == TicketStatus.CANCELLED
        assert cancelled.purchase_date_time == BOOKED_AT

    def test_other_statuses_touch_status_only(self, reservations, ticket):
        """Test EXPIRED leaves the booking timestamps as they were."""
        assert reservations.update_ticket_status(ticket.id, TicketStatus.EXPIRED) is True

        expired = reservations.get_ticket_by_id(ticket.id)
        assert expired.status == TicketStatus.EXPIRED
        assert expired.booking_expiry_date_time == ticket.booking_expiry_date_time

    def test_missing_ticket_returns_false(self, reservations):
        """Test unknown ids are reported as False, not raised."""
        assert reservations.cancel(12345) is False
        assert reservations.mark_sold(12345) is False
        assert reservations.update_ticket_status(12345, TicketStatus.USED) is False

    @pytest.mark.parametrize("release", ["cancel", "expire"])
    def test_released_seat_can_be_booked_again(self, reservations, flight, student, ticket, release):
        """Test cancelled and expired tickets free their seat."""
        if release == "cancel":
            reservations.cancel(ticket.id)
        else:
            reservations.update_ticket_status(ticket.id, TicketStatus.EXPIRED)

        rebooked = reservations.book_seat(flight, student, "A1")
        assert rebooked is not None
        assert rebooked.id != ticket.id

    def test_sold_seat_cannot_be_booked(self, reservations, flight, student, ticket):
        reservations.mark_sold(ticket.id, BOOKED_AT)
        assert reservations.book_seat(flight, student, "A1") is None

    def test_expired_hold_still_occupies_until_rewritten(self, services, reservations, flight, student, ticket):
        """Test expiry is passive: the seat stays held until the status changes."""
        stored = reservations.get_ticket_by_id(ticket.id)
        assert stored.is_booking_expired(BOOKED_AT + timedelta(hours=25))
        assert stored.status == TicketStatus.BOOKED
        assert services.flights.get_occupied_seats_count(flight.id) == 1
        assert reservations.book_seat(flight, student, "A1") is None


class TestTicketQueries:
    """Test cases for ticket lookups and passenger history."""

    def test_get_missing_ticket(self, reservations):
        assert reservations.get_ticket_by_id(1) is None

    def test_get_all_tickets_newest_first(self, services, flight, student):
        clock = iter([BOOKED_AT, BOOKED_AT + timedelta(minutes=5), BOOKED_AT + timedelta(minutes=10)])
        engine = ReservationEngine(services.db, services.flights, services.passengers, clock=lambda: next(clock))
        first = engine.book_seat(flight, student, "A1")
        second = engine.book_seat(flight, student, "A2")
        third = engine.book_seat(flight, student, "A3")

        assert [t.id for t in engine.get_all_tickets()] == [third.id, second.id, first.id]

    def test_get_all_tickets_by_status(self, reservations, flight, student):
        sold = reservations.book_seat(flight, student, "A1")
        reservations.book_seat(flight, student, "A2")
        reservations.mark_sold(sold.id)

        only_sold = reservations.get_all_tickets(TicketStatus.SOLD)
        assert [t.id for t in only_sold] == [sold.id]
        assert len(reservations.get_all_tickets(TicketStatus.BOOKED)) == 1
        assert reservations.get_all_tickets(TicketStatus.USED) == []

    def test_passenger_history(self, services, reservations, route, flight, student, flight_factory):
        """Test history is ordered by departure, latest first, with flight and passenger attached."""
        later = services.flights.add_flight(flight_factory(route, departure=datetime(2024, 7, 1, 9, 0)))
        first_trip = reservations.book_seat(flight, student, "A1")
        second_trip = reservations.book_seat(later, student, "B7")

        history = reservations.get_tickets_by_passenger_id(student.id)

        assert [t.id for t in history] == [second_trip.id, first_trip.id]
        assert history[0].flight.id == later.id
        assert history[0].flight.route.full_description == "Kyiv -> Zhytomyr -> Rivne -> Lviv"
        assert history[1].passenger.document_number == "AB123456"

    def test_history_of_unknown_passenger_is_empty(self, reservations):
        assert reservations.get_tickets_by_passenger_id(777) == []

    def test_history_without_tickets(self, reservations, student):
        assert reservations.get_tickets_by_passenger_id(student.id) == []
