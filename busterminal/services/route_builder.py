"""
Route graph builder.

A route is persisted as one header row plus one link row per intermediate
stop, each stamped with its 1-based position. The header and its links are
written in a single transaction: readers either see the complete route with
its stops in order, or no route at all.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..database.config import DatabaseConfig
from ..database.errors import translate_errors
from ..database.models import Route, RouteIntermediateStop
from ..exceptions import DataIntegrityError, PersistenceError
from ..models.stop import RouteModel, StopModel
from .stop_catalog import StopCatalog

logger = logging.getLogger(__name__)

# (route_id, departure_stop_id, destination_stop_id, [intermediate stop ids in order])
RouteRow = Tuple[int, int, int, List[int]]


class RouteGraphBuilder:
    """
    Builds, persists and reconstructs routes.

    Endpoints and intermediate stops are resolved through the stop catalog.
    A stop reference that cannot be resolved is a DataIntegrityError: an
    unresolved endpoint or gap in the chain makes the route meaningless.
    """

    def __init__(self, db: DatabaseConfig, stop_catalog: StopCatalog):
        self.db = db
        self.stop_catalog = stop_catalog

    def add_route(self, route: RouteModel) -> RouteModel:
        """
        Persist a route atomically.

        Args:
            route: Route whose stops all carry persisted ids

        Returns:
            The route with its generated id

        Raises:
            ValueError: An endpoint has no persisted id (nothing is written)
            PersistenceError: Any storage failure; the transaction is rolled back
        """
        if not route.departure_stop.is_persisted:
            raise ValueError("Departure stop must be persisted before creating a route")
        if not route.destination_stop.is_persisted:
            raise ValueError("Destination stop must be persisted before creating a route")

        with translate_errors("open session for route creation"):
            session = self.db.get_session()
        route_id: Optional[int] = None
        try:
            header = Route(
                departure_stop_id=route.departure_stop.id,
                destination_stop_id=route.destination_stop.id,
            )
            session.add(header)
            session.flush()
            route_id = header.id
            if route_id is None:
                raise PersistenceError("Route header insert returned no generated id")

            links = []
            for order, stop in enumerate(route.intermediate_stops, start=1):
                if not stop.is_persisted:
                    raise DataIntegrityError(
                        f"Intermediate stop #{order} ('{stop.name}') has no persisted id"
                    )
                links.append({"route_id": route_id, "stop_id": stop.id, "stop_order": order})

            if links:
                session.execute(RouteIntermediateStop.__table__.insert(), links)
                # executemany rowcounts are driver-dependent; count what landed instead
                inserted = session.scalar(
                    select(func.count()).select_from(RouteIntermediateStop)
                    .where(RouteIntermediateStop.route_id == route_id)
                )
                if inserted != len(links):
                    raise PersistenceError(
                        f"Batched intermediate stop insert wrote {inserted} of {len(links)} rows"
                    )

            session.commit()
        except Exception as e:
            self._rollback(session, route_id)
            if isinstance(e, SQLAlchemyError):
                logger.error(f"Failed to add route {route.full_description}: {e}")
                raise PersistenceError(f"Failed to add route: {e}") from e
            raise
        finally:
            session.close()

        stored = route.with_id(route_id)
        logger.info(
            f"Route added: id={route_id}, {stored.full_description} "
            f"({len(route.intermediate_stops)} intermediate stops)"
        )
        return stored

    @staticmethod
    def _rollback(session, route_id: Optional[int]) -> None:
        logger.warning(f"Rolling back route creation (attempted id={route_id})")
        try:
            session.rollback()
        except SQLAlchemyError as rollback_error:
            logger.error(f"Route creation rollback failed: {rollback_error}")

    def get_route_by_id(self, route_id: int) -> Optional[RouteModel]:
        """
        Reload a route with its intermediate stops in traversal order.

        Returns:
            The route, or None when no header exists

        Raises:
            DataIntegrityError: A referenced stop cannot be resolved
        """
        with translate_errors(f"load route {route_id}"):
            with self.db.get_session_context() as session:
                rows = self._load_route_rows(session, [route_id])
        if not rows:
            logger.debug(f"Route {route_id} not found")
            return None
        return self._assemble(rows)[0]

    def get_routes_by_ids(self, route_ids: Iterable[int]) -> Dict[int, RouteModel]:
        """Reload several routes; ids without a header are absent from the result."""
        wanted = list(set(route_ids))
        if not wanted:
            return {}
        with translate_errors("load routes"):
            with self.db.get_session_context() as session:
                rows = self._load_route_rows(session, wanted)
        return {route.id: route for route in self._assemble(rows)}

    def get_all_routes(self) -> List[RouteModel]:
        """All routes ordered by id."""
        with translate_errors("load routes"):
            with self.db.get_session_context() as session:
                rows = self._load_route_rows(session, None)
        routes = self._assemble(rows)
        logger.debug(f"Loaded {len(routes)} routes")
        return routes

    def _load_route_rows(self, session, route_ids: Optional[List[int]]) -> List[RouteRow]:
        header_query = select(Route.id, Route.departure_stop_id, Route.destination_stop_id).order_by(Route.id)
        link_query = select(
            RouteIntermediateStop.route_id, RouteIntermediateStop.stop_id
        ).order_by(RouteIntermediateStop.route_id, RouteIntermediateStop.stop_order)
        if route_ids is not None:
            header_query = header_query.where(Route.id.in_(route_ids))
            link_query = link_query.where(RouteIntermediateStop.route_id.in_(route_ids))

        headers = session.execute(header_query).all()
        if not headers:
            return []

        links = defaultdict(list)
        for link_route_id, stop_id in session.execute(link_query):
            links[link_route_id].append(stop_id)

        return [(rid, dep_id, dest_id, links[rid]) for rid, dep_id, dest_id in headers]

    def _assemble(self, rows: List[RouteRow]) -> List[RouteModel]:
        stop_ids = set()
        for _, dep_id, dest_id, intermediate_ids in rows:
            stop_ids.update((dep_id, dest_id, *intermediate_ids))
        stops = self.stop_catalog.get_stops_by_ids(stop_ids)

        routes = []
        for route_id, dep_id, dest_id, intermediate_ids in rows:
            routes.append(RouteModel(
                id=route_id,
                departure_stop=self._resolve(stops, dep_id, route_id, "departure stop"),
                destination_stop=self._resolve(stops, dest_id, route_id, "destination stop"),
                intermediate_stops=tuple(
                    self._resolve(stops, stop_id, route_id, "intermediate stop")
                    for stop_id in intermediate_ids
                ),
            ))
        return routes

    @staticmethod
    def _resolve(stops: Dict[int, StopModel], stop_id: int, route_id: int, role: str) -> StopModel:
        stop = stops.get(stop_id)
        if stop is None:
            message = f"{role.capitalize()} {stop_id} referenced by route {route_id} does not exist"
            logger.error(message)
            raise DataIntegrityError(message)
        return stop
