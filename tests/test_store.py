"""Unit tests for the flight store and change detection."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from arriva.errors import PersistError
from arriva.ingestion.changes import detect_changes
from arriva.ingestion.store import FlightStore
from arriva.models import Flight

from conftest import make_record


def _row_count(session_factory) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(Flight))


class TestFlightStoreUpsert:
    """Tests for FlightStore.upsert."""

    def test_upsert_twice_is_idempotent(self, store, session_factory) -> None:
        record = make_record(status="DELAYED")
        store.upsert([record])
        first = store.read_by_dates({"2025-01-25"})

        store.upsert([record])
        second = store.read_by_dates({"2025-01-25"})

        assert _row_count(session_factory) == 1
        assert first == second == [record]

    def test_upsert_replaces_every_field(self, store) -> None:
        store.upsert([make_record(status="DELAYED", origin="Cochin")])
        replacement = make_record(status="LANDED", origin="Kochi")
        replacement.estimated_time = "12:20"
        store.upsert([replacement])

        assert store.read_by_dates({"2025-01-25"}) == [replacement]

    def test_same_flight_different_dates_are_separate_rows(self, store, session_factory) -> None:
        store.upsert([
            make_record(flight_date="2025-01-25"),
            make_record(flight_date="2025-01-26"),
        ])
        assert _row_count(session_factory) == 2

    def test_free_text_board_cells_stored_verbatim(self, store) -> None:
        record = make_record("QR 674 / QR 5123", status="DELAYED - NEW TIME TO BE ADVISED", scheduled_time="12:30 (+1)")
        record.airline_code = "QR"
        record.estimated_time = "12:25 approx"
        store.upsert([record])

        assert store.read_by_dates({"2025-01-25"}) == [record]

    def test_board_text_columns_are_unbounded(self) -> None:
        columns = Flight.__table__.c
        for name in ("flight_id", "airline_code", "origin", "scheduled_time",
                     "estimated_time", "actual_time", "terminal", "status", "flight_date"):
            assert columns[name].type.length is None, name

    def test_empty_upsert(self, store) -> None:
        assert store.upsert([]) == 0

    def test_database_error_raises_persist_error(self) -> None:
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "sqlite"
        session.execute.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))
        store = FlightStore(MagicMock(return_value=session))

        with pytest.raises(PersistError, match="disk I/O error"):
            store.upsert([make_record()])
        session.rollback.assert_called_once()


class TestFlightStoreRead:
    """Tests for FlightStore reads."""

    def test_read_by_dates_filters_dates(self, store) -> None:
        store.upsert([
            make_record("Q2 707", flight_date="2025-01-24"),
            make_record("EK 652", flight_date="2025-01-25"),
            make_record("SQ 452", flight_date="2025-01-26"),
        ])
        records = store.read_by_dates({"2025-01-25", "2025-01-26"})
        assert {r.flight_id for r in records} == {"EK 652", "SQ 452"}

    def test_read_by_dates_empty_set(self, store) -> None:
        assert store.read_by_dates(set()) == []

    def test_read_by_date_orders_by_scheduled_time(self, store) -> None:
        store.upsert([
            make_record("EK 652", scheduled_time="15:00"),
            make_record("Q2 707", scheduled_time="08:10"),
        ])
        assert [r.flight_id for r in store.read_by_date("2025-01-25")] == ["Q2 707", "EK 652"]


class TestDetectChanges:
    """Tests for status change detection."""

    def test_no_change_for_first_sighting(self) -> None:
        assert detect_changes([make_record(status="LANDED")], []) == []

    def test_no_change_when_status_equal(self) -> None:
        stored = [make_record(status="DELAYED")]
        assert detect_changes([make_record(status="DELAYED")], stored) == []

    def test_change_when_status_differs(self) -> None:
        stored = [make_record(status="DELAYED")]
        new = make_record(status="LANDED")
        changes = detect_changes([new], stored)

        assert len(changes) == 1
        assert changes[0].record is new
        assert changes[0].old_status == "DELAYED"
        assert changes[0].new_status == "LANDED"
        assert changes[0].description == "DELAYED → LANDED"
        assert changes[0].message == "Flight Q2 707 from Cochin: Status changed from DELAYED to LANDED"

    def test_match_requires_same_date(self) -> None:
        stored = [make_record(status="DELAYED", flight_date="2025-01-24")]
        assert detect_changes([make_record(status="LANDED")], stored) == []

    def test_detects_against_state_read_before_upsert(self, store) -> None:
        store.upsert([make_record(status="DELAYED")])
        new = make_record(status="LANDED")

        stored = store.read_by_dates({new.flight_date})
        store.upsert([new])

        assert len(detect_changes([new], stored)) == 1
        assert detect_changes([new], store.read_by_dates({new.flight_date})) == []
