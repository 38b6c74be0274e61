"""
Database models for Arriva.

Schema priorities:
1. Idempotent upserts keyed by (flight_id, flight_date)
2. Bulk reads by flight date for change detection
3. Append-only notification log
"""

from arriva.models.base import Base, create_db_engine, create_session_factory, init_db, get_session
from arriva.models.flight import Flight
from arriva.models.notification import Channel, NotificationLog, NotificationSubscription, Profile

__all__ = [
    'Base',
    'create_db_engine',
    'create_session_factory',
    'init_db',
    'get_session',
    'Channel',
    'Flight',
    'NotificationLog',
    'NotificationSubscription',
    'Profile',
]
