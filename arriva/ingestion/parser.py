"""
Arrivals board parser.

The board is an HTML page whose markup is not contractually stable, so
parsing is split in two:

1. Extraction: turn the document into rows of cell text. Backed by the
   standard library's tolerant HTMLParser; unclosed cells and rows are
   closed by the next cell/row.
2. Acceptance: decide whether a row of cells is a flight. Precision over
   recall - a row that does not look exactly like a flight is dropped.

Board row layout (cell index):
0: flight    - Carrier code + number (e.g., "Q2 707")
1: origin    - Free text city name
2: date      - DD/MM/YYYY
3: scheduled - HH:mm
4: estimated - HH:mm (optional)
5: terminal  - e.g. "T1", "DOM"
6: status    - Free text (LANDED, DELAYED, ...)
"""

import logging
import re
from dataclasses import dataclass, asdict
from html.parser import HTMLParser
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

MIN_CELLS = 7

# 2+ alphanumerics, optional space, digits; a letter must appear in the
# two-character airline designator ("723" is a gate number, not a flight)
FLIGHT_ID_PATTERN = re.compile(r'^(?=[A-Z0-9]?[A-Z])[A-Z0-9]{2,}\s*\d+', re.IGNORECASE)

_WHITESPACE = re.compile(r'\s+')

DEFAULT_ORIGIN = 'Unknown'
DEFAULT_TERMINAL = 'T1'
DEFAULT_STATUS = '-'


@dataclass
class FlightRecord:
    """
    One arrivals-board flight.

    Identity is (flight_id, flight_date). actual_time is reserved; the
    board does not expose it so ingestion always leaves it empty.
    """
    flight_id: str
    airline_code: str
    origin: str
    scheduled_time: str
    estimated_time: Optional[str]
    terminal: str
    status: str
    flight_date: str
    actual_time: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.flight_id, self.flight_date)

    def to_dict(self) -> dict:
        return asdict(self)


class _TableRowExtractor(HTMLParser):
    """Collect the text of every <td>/<th> grouped by <tr>."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.rows: List[List[str]] = []
        self._row: Optional[List[str]] = None
        self._cell: Optional[List[str]] = None

    def handle_starttag(self, tag, attrs):
        if tag == 'tr':
            self._close_row()
            self._row = []
        elif tag in ('td', 'th'):
            self._close_cell()
            if self._row is None:
                # Cell outside any row; start an implicit one
                self._row = []
            self._cell = []

    def handle_endtag(self, tag):
        if tag in ('td', 'th'):
            self._close_cell()
        elif tag in ('tr', 'table', 'tbody', 'thead', 'tfoot'):
            self._close_row()

    def handle_data(self, data):
        if self._cell is not None:
            self._cell.append(data)

    def close(self):
        super().close()
        self._close_row()

    def _close_cell(self):
        if self._cell is not None and self._row is not None:
            self._row.append(clean_cell_text(''.join(self._cell)))
        self._cell = None

    def _close_row(self):
        self._close_cell()
        if self._row:
            self.rows.append(self._row)
        self._row = None


def clean_cell_text(text: str) -> str:
    """Normalize cell text: nbsp to space, collapse whitespace, strip."""
    return _WHITESPACE.sub(' ', text.replace('\xa0', ' ')).strip()


def extract_rows(html: str) -> List[List[str]]:
    """
    Extract table rows as lists of cell text, in document order.

    Never raises for malformed markup; garbage in yields fewer rows.
    """
    extractor = _TableRowExtractor()
    extractor.feed(html or '')
    extractor.close()
    return extractor.rows


def _iso_date(raw: str) -> Optional[str]:
    """Convert board DD/MM/YYYY to zero-padded YYYY-MM-DD."""
    parts = [p.strip() for p in raw.split('/')]
    if len(parts) != 3 or not all(parts):
        return None
    day, month, year = parts
    return f'{year.zfill(4)}-{month.zfill(2)}-{day.zfill(2)}'


def parse_row(cells: List[str]) -> Optional[FlightRecord]:
    """
    Apply the row acceptance rule.

    Returns a FlightRecord, or None if the row is not a flight.
    """
    if len(cells) < MIN_CELLS:
        return None

    flight_id = cells[0].strip()
    if not FLIGHT_ID_PATTERN.match(flight_id):
        return None

    date_cell = cells[2].strip()
    flight_date = _iso_date(date_cell) if date_cell else None
    if not flight_date:
        return None

    scheduled_time = cells[3].strip()
    if not scheduled_time:
        return None

    return FlightRecord(
        flight_id=flight_id,
        airline_code=flight_id[:2].upper(),
        origin=cells[1].strip() or DEFAULT_ORIGIN,
        scheduled_time=scheduled_time,
        estimated_time=cells[4].strip() or None,
        terminal=_WHITESPACE.sub('', cells[5]) or DEFAULT_TERMINAL,
        status=cells[6].strip() or DEFAULT_STATUS,
        flight_date=flight_date,
        actual_time=None,
    )


def parse_board(html: str) -> List[FlightRecord]:
    """
    Parse an arrivals board document into flight records.

    Rejected rows are skipped silently; an empty result is not an error
    at this level.
    """
    records = []
    rows = extract_rows(html)
    for cells in rows:
        record = parse_row(cells)
        if record:
            records.append(record)
        else:
            logger.debug(f'Skipping non-flight row: {cells[:3]}')

    logger.debug(f'Accepted {len(records)} of {len(rows)} rows')
    return records


def deduplicate(records: Iterable[FlightRecord]) -> List[FlightRecord]:
    """
    Collapse records to one per (flight_id, flight_date).

    Later records overwrite earlier ones.
    """
    by_key: Dict[Tuple[str, str], FlightRecord] = {}
    for record in records:
        by_key[record.key] = record
    return list(by_key.values())
