"""
Status change detection.

Compares freshly parsed flights with the stored copy captured *before*
this run's upsert. Reading after the upsert would make every flight
look unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List

from arriva.ingestion.parser import FlightRecord

logger = logging.getLogger(__name__)


@dataclass
class StatusChange:
    """A flight whose board status moved between two runs."""
    record: FlightRecord
    old_status: str
    new_status: str

    @property
    def description(self) -> str:
        """Short transition label, e.g. '- → LANDED'."""
        return f'{self.old_status} → {self.new_status}'

    @property
    def message(self) -> str:
        """Human-readable notification text."""
        return (
            f'Flight {self.record.flight_id} from {self.record.origin}: '
            f'Status changed from {self.old_status} to {self.new_status}'
        )


def detect_changes(
    records: Iterable[FlightRecord],
    stored: Iterable[FlightRecord],
) -> List[StatusChange]:
    """
    Emit a StatusChange for every record whose stored status differs.

    Flights not yet stored (first sighting) never produce a change.
    """
    stored_by_key = {s.key: s for s in stored}

    changes = []
    for record in records:
        previous = stored_by_key.get(record.key)
        if previous is None:
            continue
        if previous.status != record.status:
            changes.append(StatusChange(
                record=record,
                old_status=previous.status,
                new_status=record.status,
            ))

    if changes:
        logger.info(f'Detected {len(changes)} status changes')
    return changes
