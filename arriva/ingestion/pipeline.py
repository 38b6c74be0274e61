"""
Ingestion pipeline - orchestrates board fetch to notification fan-out.

Pipeline stages:
1. Fetch:    GET the arrivals board HTML
2. Parse:    Extract and accept flight rows, dedupe by (flight_id, date)
3. Diff:     Compare with stored rows for the same dates (read BEFORE upsert)
4. Persist:  Upsert the batch
5. Dispatch: Notify subscribers of each status change

Fetch failures and empty parses end in FALLBACK with the mock dataset.
Persist failures are logged and dispatch still runs; the next run retries
the same idempotent upsert.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, List, Optional

from arriva.errors import FetchError, ParseEmptyError, PersistError
from arriva.ingestion.board_client import BoardClient
from arriva.ingestion.changes import StatusChange, detect_changes
from arriva.ingestion.fallback import mock_flights
from arriva.ingestion.parser import FlightRecord, deduplicate, parse_board
from arriva.ingestion.store import FlightStore
from arriva.services.dispatcher import DispatchReport, NotificationDispatcher

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Stage reached by one pipeline run."""
    FETCHING = 'fetching'
    PARSING = 'parsing'
    DIFFING = 'diffing'
    PERSISTING = 'persisting'
    DISPATCHING = 'dispatching'
    DONE = 'done'
    FALLBACK = 'fallback'


SOURCE_LIVE = 'live'
SOURCE_MOCK = 'mock'


@dataclass
class IngestionResult:
    """Outcome of one run, shaped for the refresh endpoint."""
    flights: List[FlightRecord]
    source: str
    state: PipelineState
    status_changes: List[StatusChange] = field(default_factory=list)
    dispatch: Optional[DispatchReport] = None
    error: Optional[str] = None
    persisted: bool = False

    def to_dict(self) -> dict:
        payload = {
            'flights': [f.to_dict() for f in self.flights],
            'source': self.source,
            'statusChanges': len(self.status_changes),
        }
        if self.error:
            payload['error'] = self.error
        return payload


class IngestionPipeline:
    """
    Manages the ingestion lifecycle.

    One run is a single unit of work; all state between runs lives in
    the store. Runs within this process are serialized so the manual
    trigger and the scheduled loop never diff against each other's
    half-written batch.
    """

    def __init__(
        self,
        client: BoardClient,
        store: FlightStore,
        dispatcher: NotificationDispatcher,
        today: Optional[Callable[[], date]] = None,
    ):
        self.client = client
        self.store = store
        self.dispatcher = dispatcher
        self._today = today or date.today

        self._run_lock = threading.Lock()

        # State tracking
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_run_time: float = 0
        self._run_count: int = 0
        self._fallback_count: int = 0
        self._last_state: Optional[PipelineState] = None

    def _fallback(self, reason: Exception) -> IngestionResult:
        """Serve mock flights instead of failing."""
        self._fallback_count += 1
        logger.warning(f'Falling back to mock flights: {reason}')
        return IngestionResult(
            flights=mock_flights(self._today()),
            source=SOURCE_MOCK,
            state=PipelineState.FALLBACK,
            error=str(reason),
        )

    def _fetch_and_parse(self) -> List[FlightRecord]:
        """
        Stages 1-2.

        Raises:
            FetchError if the board cannot be fetched
            ParseEmptyError if no rows pass the acceptance rule
        """
        self._last_state = PipelineState.FETCHING
        html = self.client.fetch_board()

        self._last_state = PipelineState.PARSING
        records = parse_board(html)
        if not records:
            raise ParseEmptyError('No flights parsed from arrivals board')

        flights = deduplicate(records)
        logger.info(f'Parsed {len(records)} rows into {len(flights)} flights')
        return flights

    def run_once(self) -> IngestionResult:
        """
        Execute one ingestion cycle.

        Only unexpected programming faults propagate.
        """
        with self._run_lock:
            self._run_count += 1
            self._last_run_time = time.time()
            result = self._run()
            self._last_state = result.state
            return result

    def _run(self) -> IngestionResult:
        try:
            flights = self._fetch_and_parse()
        except (FetchError, ParseEmptyError) as e:
            return self._fallback(e)

        # Stage 3: Diff against state captured before this batch is written
        self._last_state = PipelineState.DIFFING
        dates = {f.flight_date for f in flights}
        stored = self.store.read_by_dates(dates)
        changes = detect_changes(flights, stored)

        # Stage 4: Persist; notification decisions above stand either way
        self._last_state = PipelineState.PERSISTING
        persisted = True
        try:
            self.store.upsert(flights)
        except PersistError as e:
            persisted = False
            logger.error(f'Persist failed, dispatching anyway: {e}')

        # Stage 5: Fan out
        self._last_state = PipelineState.DISPATCHING
        report = self.dispatcher.dispatch(changes)

        return IngestionResult(
            flights=flights,
            source=SOURCE_LIVE,
            state=PipelineState.DONE,
            status_changes=changes,
            dispatch=report,
            persisted=persisted,
        )

    def run_continuous(self, interval: float) -> None:
        """
        Run ingestion loop continuously.

        This method blocks - use start_background() for non-blocking.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f'Starting scheduled ingestion (interval={interval}s)')

        while self._running:
            try:
                self.run_once()
            except Exception as e:
                # Keep the schedule alive; the next tick starts clean
                logger.exception(f'Ingestion run failed: {e}')
            self._stop_event.wait(interval)

        logger.info('Scheduled ingestion stopped')

    def start_background(self, interval: float) -> None:
        """Start scheduled ingestion in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Ingestion already running')
            return

        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            daemon=True,
        )
        self._thread.start()
        logger.info('Background ingestion started')

    def stop(self) -> None:
        """Stop background ingestion."""
        self._running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
        logger.info('Ingestion stopped')

    @property
    def stats(self) -> dict:
        """Get ingestion statistics."""
        return {
            'run_count': self._run_count,
            'fallback_count': self._fallback_count,
            'last_run_time': self._last_run_time,
            'last_state': self._last_state.value if self._last_state else None,
            'running': self._running,
        }
