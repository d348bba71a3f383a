"""
Stop catalog: static boarding-location records.
"""

import logging
from typing import Dict, Iterable, List, Optional
from sqlalchemy import select

from ..database.config import DatabaseConfig
from ..database.errors import translate_errors
from ..database.models import Stop
from ..models.stop import StopModel

logger = logging.getLogger(__name__)


class StopCatalog:
    """Read access to stops, plus creation for seeding."""

    def __init__(self, db: DatabaseConfig):
        self.db = db

    def get_all_stops(self) -> List[StopModel]:
        """All stops ordered by city, then name."""
        with translate_errors("load stops"):
            with self.db.get_session_context() as session:
                rows = session.scalars(select(Stop).order_by(Stop.city, Stop.name)).all()
                stops = [StopModel.model_validate(row) for row in rows]
        logger.debug(f"Loaded {len(stops)} stops")
        return stops

    def get_stop_by_id(self, stop_id: int) -> Optional[StopModel]:
        with translate_errors(f"load stop {stop_id}"):
            with self.db.get_session_context() as session:
                row = session.get(Stop, stop_id)
                stop = StopModel.model_validate(row) if row is not None else None
        if stop is None:
            logger.debug(f"Stop {stop_id} not found")
        return stop

    def get_stops_by_ids(self, stop_ids: Iterable[int]) -> Dict[int, StopModel]:
        """
        Resolve several stops in one query.

        Ids that do not resolve are simply absent from the result; callers
        decide whether that is an integrity failure.
        """
        wanted = set(stop_ids)
        if not wanted:
            return {}
        with translate_errors("resolve stops"):
            with self.db.get_session_context() as session:
                rows = session.scalars(select(Stop).where(Stop.id.in_(wanted))).all()
                return {row.id: StopModel.model_validate(row) for row in rows}

    def add_stop(self, stop: StopModel) -> StopModel:
        """Persist a stop and return it with its generated id."""
        with translate_errors(f"add stop '{stop.name}'"):
            with self.db.get_session_context() as session:
                row = Stop(name=stop.name, city=stop.city)
                session.add(row)
                session.flush()
                stored = stop.model_copy(update={"id": row.id})
        logger.info(f"Stop added: id={stored.id}, {stored.city} / {stored.name}")
        return stored
