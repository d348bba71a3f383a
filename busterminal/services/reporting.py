"""
Reporting aggregator: read-only views derived from tickets and flights.

Reports favor availability over strict referential completeness. A sold
ticket whose route no longer resolves is reported under a placeholder label
instead of failing the report.
"""

import logging
import warnings
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List
from sqlalchemy import func, select

from ..database.config import DatabaseConfig
from ..database.errors import translate_errors
from ..database.models import Flight, Ticket
from ..exceptions import DataIntegrityError, DataQualityWarning
from ..models.enums import TicketStatus
from ..models.report import FlightLoadEntry, RouteSalesEntry
from .flight_scheduler import ACTIVE_TICKET_STATUSES, FlightScheduler
from .route_builder import RouteGraphBuilder

logger = logging.getLogger(__name__)

UNKNOWN_ROUTE_LABEL = "Unknown or deleted route (ID: {route_id})"

_CENTS = Decimal("0.01")


class ReportingAggregator:
    """Sales, status and load reports. Never writes."""

    def __init__(self, db: DatabaseConfig, route_builder: RouteGraphBuilder, flight_scheduler: FlightScheduler):
        self.db = db
        self.route_builder = route_builder
        self.flight_scheduler = flight_scheduler

    def sales_by_route_for_period(self, start: date, end: date) -> List[RouteSalesEntry]:
        """
        Sold tickets per route, by purchase date within [start, end] inclusive.

        Args:
            start: First purchase day included
            end: Last purchase day included

        Returns:
            One entry per route with sales, highest total first

        Raises:
            ValueError: start is after end
        """
        if start > end:
            raise ValueError(f"Report period start {start} is after end {end}")

        period_start = datetime.combine(start, time.min)
        period_end = datetime.combine(end, time.min) + timedelta(days=1)

        with translate_errors(f"aggregate sales for {start}..{end}"):
            with self.db.get_session_context() as session:
                rows = session.execute(
                    select(
                        Flight.route_id,
                        func.coalesce(func.sum(Ticket.price_paid), 0),
                        func.count(Ticket.id),
                    )
                    .join(Flight, Ticket.flight_id == Flight.id)
                    .where(
                        Ticket.status == TicketStatus.SOLD.value,
                        Ticket.purchase_date_time >= period_start,
                        Ticket.purchase_date_time < period_end,
                    )
                    .group_by(Flight.route_id)
                ).all()

        descriptions = self._route_descriptions(route_id for route_id, _, _ in rows)
        entries = [
            RouteSalesEntry(
                route_id=route_id,
                route_description=descriptions[route_id],
                total_sales=Decimal(str(total)).quantize(_CENTS, rounding=ROUND_HALF_UP),
                ticket_count=count,
            )
            for route_id, total, count in rows
        ]
        entries.sort(key=lambda entry: (-entry.total_sales, entry.route_id))

        logger.info(f"Sales report {start}..{end}: {len(entries)} routes")
        return entries

    def _route_descriptions(self, route_ids) -> Dict[int, str]:
        wanted = list(route_ids)
        try:
            routes = self.route_builder.get_routes_by_ids(wanted)
        except DataIntegrityError as e:
            # One broken route must not hide the others
            logger.warning(f"Route resolution failed, resolving routes one by one: {e}")
            routes = {}
            for route_id in wanted:
                try:
                    route = self.route_builder.get_route_by_id(route_id)
                except DataIntegrityError:
                    route = None
                if route is not None:
                    routes[route_id] = route

        descriptions = {}
        for route_id in wanted:
            route = routes.get(route_id)
            if route is None:
                logger.warning(f"Route {route_id} has sales but does not resolve, using placeholder")
                descriptions[route_id] = UNKNOWN_ROUTE_LABEL.format(route_id=route_id)
            else:
                descriptions[route_id] = route.full_description
        return descriptions

    def ticket_counts_by_status(self) -> Dict[TicketStatus, int]:
        """
        Ticket count per status.

        Every known status is present, unseen ones as 0. Stored statuses
        that are not recognized are skipped with a DataQualityWarning.
        """
        counts = {status: 0 for status in TicketStatus}

        with translate_errors("count tickets by status"):
            with self.db.get_session_context() as session:
                rows = session.execute(
                    select(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status)
                ).all()

        for raw_status, count in rows:
            try:
                counts[TicketStatus(raw_status)] += count
            except ValueError:
                message = f"Skipping {count} tickets with unknown status {raw_status!r}"
                logger.warning(message)
                warnings.warn(message, DataQualityWarning, stacklevel=2)

        return counts

    def flight_load_report(self, day: date) -> List[FlightLoadEntry]:
        """Occupied seats and load percentage for every flight departing on the day."""
        flights = self.flight_scheduler.get_flights_by_date(day)
        if not flights:
            return []

        with translate_errors(f"count occupied seats for {day}"):
            with self.db.get_session_context() as session:
                occupied = dict(session.execute(
                    select(Ticket.flight_id, func.count(Ticket.id))
                    .where(
                        Ticket.flight_id.in_([flight.id for flight in flights]),
                        Ticket.status.in_(ACTIVE_TICKET_STATUSES),
                    )
                    .group_by(Ticket.flight_id)
                ).all())

        entries = []
        for flight in flights:
            seats_taken = occupied.get(flight.id, 0)
            load = (Decimal(seats_taken) * 100 / Decimal(flight.total_seats)).quantize(
                _CENTS, rounding=ROUND_HALF_UP
            )
            entries.append(FlightLoadEntry(
                flight_id=flight.id,
                route_description=flight.route.full_description,
                departure_date_time=flight.departure_date_time,
                total_seats=flight.total_seats,
                occupied_seats=seats_taken,
                load_percentage=load,
            ))

        logger.debug(f"Flight load report for {day}: {len(entries)} flights")
        return entries
