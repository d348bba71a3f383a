"""
Passenger registry with race-safe get-or-create.

Passengers are deduplicated by identity document. Concurrent callers are
independent sessions, so the unique (document_type, document_number)
constraint decides who inserts; losers re-read the winner's row.
"""

import logging
from typing import List, Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..database.config import DatabaseConfig
from ..database.errors import is_unique_violation, translate_errors
from ..database.models import Passenger, PASSENGER_DOCUMENT_CONSTRAINT
from ..exceptions import DataIntegrityError, PersistenceError
from ..models.passenger import PassengerModel

logger = logging.getLogger(__name__)

_DOCUMENT_COLUMNS = ("document_type", "document_number")


class PassengerRegistry:
    """Creates and looks up passengers keyed by their identity document."""

    def __init__(self, db: DatabaseConfig):
        self.db = db

    def add_or_get_passenger(self, passenger: PassengerModel) -> int:
        """
        Return the id of the passenger holding this document, creating it if needed.

        Idempotent: repeated or concurrent calls with the same document yield
        one row and the same id.

        Raises:
            DataIntegrityError: The insert hit the document constraint but no row can be found
            PersistenceError: Any other storage failure
        """
        existing = self.find_by_document(passenger.document_type, passenger.document_number)
        if existing is not None:
            logger.debug(
                f"Passenger with document {passenger.document_type}:{passenger.document_number} "
                f"already exists (id={existing.id})"
            )
            passenger.id = existing.id
            return existing.id

        try:
            with self.db.get_session_context() as session:
                row = Passenger(**self._columns(passenger))
                session.add(row)
                session.flush()
                new_id = row.id
                if new_id is None:
                    raise PersistenceError("Passenger insert produced no generated id")
        except IntegrityError as e:
            if not is_unique_violation(e, PASSENGER_DOCUMENT_CONSTRAINT, "passengers", _DOCUMENT_COLUMNS):
                logger.error(f"Failed to add passenger: {e}")
                raise PersistenceError(f"Failed to add passenger: {e}") from e

            logger.warning(
                f"Document {passenger.document_type}:{passenger.document_number} "
                f"was claimed concurrently, re-reading the existing passenger"
            )
            winner = self.find_by_document(passenger.document_type, passenger.document_number)
            if winner is None:
                raise DataIntegrityError(
                    f"Document {passenger.document_type}:{passenger.document_number} "
                    f"conflicts on insert but no passenger holds it"
                ) from e
            passenger.id = winner.id
            return winner.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to add passenger: {e}")
            raise PersistenceError(f"Failed to add passenger: {e}") from e

        passenger.id = new_id
        logger.info(f"Passenger added: id={new_id}")
        return new_id

    def find_by_document(self, document_type: str, document_number: str) -> Optional[PassengerModel]:
        with translate_errors(f"find passenger by document {document_type}:{document_number}"):
            with self.db.get_session_context() as session:
                row = session.scalars(
                    select(Passenger).where(
                        Passenger.document_type == document_type,
                        Passenger.document_number == document_number,
                    )
                ).first()
                return self._to_model(row) if row is not None else None

    def find_by_id(self, passenger_id: int) -> Optional[PassengerModel]:
        with translate_errors(f"load passenger {passenger_id}"):
            with self.db.get_session_context() as session:
                row = session.get(Passenger, passenger_id)
                return self._to_model(row) if row is not None else None

    def get_all_passengers(self) -> List[PassengerModel]:
        """All passengers ordered by full name."""
        with translate_errors("load passengers"):
            with self.db.get_session_context() as session:
                rows = session.scalars(select(Passenger).order_by(Passenger.full_name)).all()
                return [self._to_model(row) for row in rows]

    def update_passenger(self, passenger: PassengerModel) -> bool:
        """
        Replace a passenger's stored fields.

        Returns:
            False when no row has this id, or when the new document is
            already held by another passenger
        """
        if passenger.id is None:
            raise ValueError("Cannot update a passenger without an id")

        try:
            with self.db.get_session_context() as session:
                result = session.execute(
                    update(Passenger)
                    .where(Passenger.id == passenger.id)
                    .values(**self._columns(passenger))
                )
                updated = result.rowcount > 0
        except IntegrityError as e:
            if is_unique_violation(e, PASSENGER_DOCUMENT_CONSTRAINT, "passengers", _DOCUMENT_COLUMNS):
                logger.warning(
                    f"Passenger {passenger.id} not updated: document "
                    f"{passenger.document_type}:{passenger.document_number} belongs to another passenger"
                )
                return False
            logger.error(f"Failed to update passenger {passenger.id}: {e}")
            raise PersistenceError(f"Failed to update passenger {passenger.id}: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to update passenger {passenger.id}: {e}")
            raise PersistenceError(f"Failed to update passenger {passenger.id}: {e}") from e

        if updated:
            logger.info(f"Passenger {passenger.id} updated")
        else:
            logger.warning(f"Passenger {passenger.id} not found, nothing updated")
        return updated

    @staticmethod
    def _columns(passenger: PassengerModel) -> dict:
        return {
            "full_name": passenger.full_name,
            "document_type": passenger.document_type,
            "document_number": passenger.document_number,
            "phone_number": passenger.phone_number,
            "email": passenger.email,
            "benefit_type": passenger.benefit_type.value,
        }

    @staticmethod
    def _to_model(row: Passenger) -> PassengerModel:
        # benefit_type falls back to NONE with a DataQualityWarning when unrecognized
        return PassengerModel(
            id=row.id,
            full_name=row.full_name,
            document_type=row.document_type,
            document_number=row.document_number,
            phone_number=row.phone_number,
            email=row.email,
            benefit_type=row.benefit_type,
        )
