"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from typing import Optional

import pytest

# Ensure the package is importable when running tests without installing it
root = Path(__file__).resolve().parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from arriva.config import AppConfig, DatabaseConfig  # noqa: E402
from arriva.ingestion.parser import FlightRecord  # noqa: E402
from arriva.ingestion.store import FlightStore  # noqa: E402
from arriva.models import (  # noqa: E402
    NotificationSubscription,
    Profile,
    create_db_engine,
    create_session_factory,
    get_session,
    init_db,
)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(database=DatabaseConfig(url='sqlite:///:memory:'))


@pytest.fixture
def session_factory(config):
    engine = create_db_engine(config.database)
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> FlightStore:
    return FlightStore(session_factory)


def make_record(
    flight_id: str = "Q2 707",
    status: str = "-",
    flight_date: str = "2025-01-25",
    origin: str = "Cochin",
    scheduled_time: str = "12:30",
) -> FlightRecord:
    return FlightRecord(
        flight_id=flight_id,
        airline_code=flight_id[:2].upper(),
        origin=origin,
        scheduled_time=scheduled_time,
        estimated_time=None,
        terminal="T1",
        status=status,
        flight_date=flight_date,
    )


def add_subscription(
    session_factory,
    user_id: str = "user-1",
    flight_id: str = "Q2 707",
    flight_date: str = "2025-01-25",
    notify_sms: bool = False,
    notify_email: bool = False,
    notify_push: bool = False,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    push_token: Optional[str] = None,
) -> int:
    """Create a profile (if needed) and a subscription; returns subscription id."""
    with get_session(session_factory) as session:
        profile = session.get(Profile, user_id)
        if profile is None:
            session.add(Profile(
                user_id=user_id,
                phone=phone,
                notification_email=email,
                push_token=push_token,
            ))
        sub = NotificationSubscription(
            user_id=user_id,
            flight_id=flight_id,
            flight_date=flight_date,
            notify_sms=notify_sms,
            notify_email=notify_email,
            notify_push=notify_push,
        )
        session.add(sub)
        session.flush()
        return sub.id
