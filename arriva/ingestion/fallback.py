"""
Fallback flight data.

Served when the board cannot be fetched or yields no flights, so the
UI always receives a well-formed payload.
"""

from datetime import date
from typing import List, Optional

from arriva.ingestion.parser import FlightRecord

# flight_id, origin, scheduled, estimated, terminal, status
_MOCK_ROWS = [
    ('G9 093', 'Sharjah', '08:10', '07:57', 'T1', 'LANDED'),
    ('EK 652', 'Dubai', '09:30', '09:45', 'T1', 'DELAYED'),
    ('SQ 452', 'Singapore', '10:15', '10:15', 'T1', '-'),
    ('QR 674', 'Doha', '11:00', '11:00', 'T2', '-'),
    ('TK 730', 'Istanbul', '12:30', '12:30', 'T2', '-'),
    ('Q2 401', 'Gan Island', '14:00', '14:00', 'DOM', '-'),
    ('Q2 501', 'Kaadedhdhoo', '15:30', '15:30', 'DOM', 'CANCELLED'),
]


def mock_flights(today: Optional[date] = None) -> List[FlightRecord]:
    """Fixed synthetic arrivals dated today."""
    flight_date = (today or date.today()).isoformat()
    return [
        FlightRecord(
            flight_id=flight_id,
            airline_code=flight_id[:2],
            origin=origin,
            scheduled_time=scheduled,
            estimated_time=estimated,
            terminal=terminal,
            status=status,
            flight_date=flight_date,
        )
        for flight_id, origin, scheduled, estimated, terminal, status in _MOCK_ROWS
    ]
