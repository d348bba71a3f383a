"""
SQLAlchemy database models for the bus terminal system.

This module defines the persisted shape the core services rely on:
- Stop: boarding locations
- Route: departure/destination header of a route
- RouteIntermediateStop: ordered link rows between a route and its stops
- Flight: scheduled journeys along a route
- Passenger: passengers keyed by identity document
- Ticket: seat claims on flights

Seat-per-flight and document uniqueness are enforced here, by the storage
engine, rather than by application locks.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Index, Numeric,
    PrimaryKeyConstraint, UniqueConstraint, text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship

# Create the declarative base for all models
Base = declarative_base()

# Constraint names are matched when interpreting integrity errors
PASSENGER_DOCUMENT_CONSTRAINT = "uq_passenger_document"
TICKET_SEAT_CONSTRAINT = "uq_ticket_flight_seat_active"

_ACTIVE_TICKET_CLAUSE = text("status IN ('BOOKED', 'SOLD')")


class Stop(Base):
    """Boarding location. Static, read many times."""
    __tablename__ = 'stops'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    city = Column(String(100), nullable=False, index=True)

    def __repr__(self):
        return f"<Stop(id={self.id}, name='{self.name}', city='{self.city}')>"


class Route(Base):
    """
    Route header.

    The intermediate stops live in route_intermediate_stops, ordered by
    stop_order. A route owns no flights; flights reference it.
    """
    __tablename__ = 'routes'

    id = Column(Integer, primary_key=True, autoincrement=True)
    departure_stop_id = Column(Integer, ForeignKey('stops.id'), nullable=False, index=True)
    destination_stop_id = Column(Integer, ForeignKey('stops.id'), nullable=False, index=True)

    intermediate_links = relationship(
        "RouteIntermediateStop",
        back_populates="route",
        order_by="RouteIntermediateStop.stop_order",
        lazy="select",
    )

    def __repr__(self):
        return f"<Route(id={self.id}, from={self.departure_stop_id}, to={self.destination_stop_id})>"


class RouteIntermediateStop(Base):
    """Link row stamped with a 1-based sequence number."""
    __tablename__ = 'route_intermediate_stops'

    route_id = Column(Integer, ForeignKey('routes.id', ondelete='CASCADE'), nullable=False)
    stop_id = Column(Integer, ForeignKey('stops.id'), nullable=False, index=True)
    stop_order = Column(Integer, nullable=False)

    route = relationship("Route", back_populates="intermediate_links", lazy="select")

    __table_args__ = (
        PrimaryKeyConstraint('route_id', 'stop_order', name='pk_route_intermediate_stops'),
    )

    def __repr__(self):
        return f"<RouteIntermediateStop(route={self.route_id}, stop={self.stop_id}, order={self.stop_order})>"


class Flight(Base):
    """
    Scheduled journey.

    Occupancy is counted from active tickets; there is no occupied-seats
    column.
    """
    __tablename__ = 'flights'

    id = Column(Integer, primary_key=True, autoincrement=True)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=False, index=True)
    departure_date_time = Column(DateTime, nullable=False, index=True)
    arrival_date_time = Column(DateTime, nullable=False)
    total_seats = Column(Integer, nullable=False)
    bus_model = Column(String(100), nullable=True)
    price_per_seat = Column(Numeric(10, 2), nullable=False)
    status = Column(String(16), nullable=False)

    tickets = relationship("Ticket", back_populates="flight", lazy="select")

    def __repr__(self):
        return f"<Flight(id={self.id}, route_id={self.route_id}, departure={self.departure_date_time})>"


class Passenger(Base):
    """Passenger keyed by the (document_type, document_number) natural key."""
    __tablename__ = 'passengers'

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False, index=True)
    document_number = Column(String(50), nullable=False)
    document_type = Column(String(50), nullable=False)
    phone_number = Column(String(30), nullable=False)
    email = Column(String(255), nullable=True)
    benefit_type = Column(String(16), nullable=True)

    tickets = relationship("Ticket", back_populates="passenger", lazy="select")

    __table_args__ = (
        UniqueConstraint('document_type', 'document_number', name=PASSENGER_DOCUMENT_CONSTRAINT),
    )

    def __repr__(self):
        return f"<Passenger(id={self.id}, document='{self.document_type}:{self.document_number}')>"


class Ticket(Base):
    """Seat claim on one flight for one passenger."""
    __tablename__ = 'tickets'

    id = Column(Integer, primary_key=True, autoincrement=True)
    flight_id = Column(Integer, ForeignKey('flights.id'), nullable=False, index=True)
    passenger_id = Column(Integer, ForeignKey('passengers.id'), nullable=False, index=True)
    seat_number = Column(String(10), nullable=False)
    booking_date_time = Column(DateTime, nullable=False)
    purchase_date_time = Column(DateTime, nullable=True, index=True)
    booking_expiry_date_time = Column(DateTime, nullable=True)
    price_paid = Column(Numeric(10, 2), nullable=False)
    status = Column(String(16), nullable=False, index=True)

    flight = relationship("Flight", back_populates="tickets", lazy="select")
    passenger = relationship("Passenger", back_populates="tickets", lazy="select")

    def __repr__(self):
        return f"<Ticket(id={self.id}, flight_id={self.flight_id}, seat='{self.seat_number}', status='{self.status}')>"


# At most one active ticket per (flight, seat); cancelled/expired/used rows free the seat
Index(
    TICKET_SEAT_CONSTRAINT,
    Ticket.flight_id,
    Ticket.seat_number,
    unique=True,
    sqlite_where=_ACTIVE_TICKET_CLAUSE,
    postgresql_where=_ACTIVE_TICKET_CLAUSE,
)
Index('idx_ticket_flight_status', Ticket.flight_id, Ticket.status)


def create_all_tables(engine):
    """
    Create all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.create_all(bind=engine)


def drop_all_tables(engine):
    """
    Drop all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.drop_all(bind=engine)


# Export all models and utilities
__all__ = [
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
]
