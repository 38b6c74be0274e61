"""
Flight model - latest known board state per flight and day.

One row per (flight_id, flight_date). Rows are written by the ingestion
pipeline with an upsert that replaces every field, and read back in bulk
by flight date to detect status transitions.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from arriva.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Flight(Base):
    """Stored arrivals-board row."""

    __tablename__ = 'flights'

    # Surrogate key; identity is the (flight_id, flight_date) constraint below
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    flight_id: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment='Carrier code + number (e.g., Q2 707)'
    )

    airline_code: Mapped[str] = mapped_column(
        String,
        nullable=False,
        index=True,
    )

    origin: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default='Unknown',
    )

    scheduled_time: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment='Local HH:mm'
    )

    estimated_time: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
    )

    actual_time: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
        comment='Not populated by the board scraper yet'
    )

    terminal: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default='T1',
    )

    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default='-',
    )

    flight_date: Mapped[str] = mapped_column(
        String,
        nullable=False,
        index=True,
        comment='ISO date YYYY-MM-DD'
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint('flight_id', 'flight_date', name='uq_flights_flight_id_date'),
    )

    def __repr__(self) -> str:
        return f'<Flight {self.flight_id} {self.flight_date} {self.status}>'
