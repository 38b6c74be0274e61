"""
Data ingestion module for Arriva.

Handles fetching the arrivals board, parsing it into flight records,
detecting status changes and persisting them. The orchestrating
IngestionPipeline lives in arriva.ingestion.pipeline (it depends on the
notification services, which in turn use the records defined here).
"""

from arriva.ingestion.board_client import BoardClient
from arriva.ingestion.changes import StatusChange, detect_changes
from arriva.ingestion.parser import FlightRecord, deduplicate, extract_rows, parse_board, parse_row

__all__ = [
    'BoardClient',
    'FlightRecord',
    'StatusChange',
    'deduplicate',
    'detect_changes',
    'extract_rows',
    'parse_board',
    'parse_row',
]
