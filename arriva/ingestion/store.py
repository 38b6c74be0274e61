"""
Flight store - persistence for parsed board rows.

Two operations:
- read_by_dates: one bulk query for every flight on the given days
- upsert: INSERT ... ON CONFLICT (flight_id, flight_date) DO UPDATE,
  replacing every field so re-upserting the same rows is a no-op in effect
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from arriva.errors import PersistError
from arriva.ingestion.parser import FlightRecord
from arriva.models import Flight, get_session

logger = logging.getLogger(__name__)

# Columns overwritten on conflict (everything but identity and created_at)
_REPLACED_COLUMNS = (
    'airline_code',
    'origin',
    'scheduled_time',
    'estimated_time',
    'actual_time',
    'terminal',
    'status',
    'updated_at',
)


def flight_to_record(flight: Flight) -> FlightRecord:
    """Convert a stored Flight row back into a FlightRecord."""
    return FlightRecord(
        flight_id=flight.flight_id,
        airline_code=flight.airline_code,
        origin=flight.origin,
        scheduled_time=flight.scheduled_time,
        estimated_time=flight.estimated_time,
        terminal=flight.terminal,
        status=flight.status,
        flight_date=flight.flight_date,
        actual_time=flight.actual_time,
    )


class FlightStore:
    """Reads and upserts flights keyed by (flight_id, flight_date)."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def read_by_dates(self, dates: Iterable[str]) -> List[FlightRecord]:
        """Load every stored flight whose flight_date is in dates."""
        dates = sorted(set(dates))
        if not dates:
            return []

        with self.session_factory() as session:
            rows = session.scalars(
                select(Flight).where(Flight.flight_date.in_(dates))
            ).all()
            return [flight_to_record(row) for row in rows]

    def read_by_date(self, flight_date: str) -> List[FlightRecord]:
        """Stored flights for one day, ordered by scheduled time."""
        records = self.read_by_dates([flight_date])
        records.sort(key=lambda r: (r.scheduled_time, r.flight_id))
        return records

    def _insert_for(self, session: Session):
        """Pick the dialect insert that supports ON CONFLICT."""
        if session.get_bind().dialect.name == 'postgresql':
            return postgresql_insert
        return sqlite_insert

    def upsert(self, records: Iterable[FlightRecord]) -> int:
        """
        Upsert records, fully replacing the stored fields on conflict.

        Returns count of rows written.

        Raises:
            PersistError if the database rejects the write
        """
        records = list(records)
        if not records:
            return 0

        now = datetime.now(timezone.utc)
        try:
            with get_session(self.session_factory) as session:
                insert = self._insert_for(session)
                for record in records:
                    values = record.to_dict()
                    values['updated_at'] = now
                    stmt = insert(Flight).values(**values)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=['flight_id', 'flight_date'],
                        set_={col: stmt.excluded[col] for col in _REPLACED_COLUMNS},
                    )
                    session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f'Flight upsert failed: {e}')
            raise PersistError(f'Upsert of {len(records)} flights failed: {e}') from e

        logger.info(f'Upserted {len(records)} flights')
        return len(records)
