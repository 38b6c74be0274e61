"""
Subscriber models - profiles, flight subscriptions and the notification log.

Profiles hold a user's contact points. Subscriptions say which channels a
user wants for one flight on one day. The notification log is append-only:
one row per (subscription, attempted channel) per dispatch.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Integer, DateTime, Boolean, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arriva.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Channel(str, Enum):
    """Notification delivery channel."""
    SMS = 'sms'
    EMAIL = 'email'
    PUSH = 'push'


class Profile(Base):
    """Contact details for one user."""

    __tablename__ = 'profiles'

    user_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )

    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    phone: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment='E.164 phone number for SMS'
    )

    notification_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    push_token: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment='FCM registration token; cleared when the gateway reports 410'
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    subscriptions: Mapped[List['NotificationSubscription']] = relationship(
        back_populates='profile',
        cascade='all, delete-orphan',
    )

    def __repr__(self) -> str:
        return f'<Profile {self.user_id}>'


class NotificationSubscription(Base):
    """A user's interest in status changes of one flight on one day."""

    __tablename__ = 'notification_subscriptions'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey('profiles.user_id', ondelete='CASCADE'),
        nullable=False,
    )

    flight_id: Mapped[str] = mapped_column(String, nullable=False)

    flight_date: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment='ISO date YYYY-MM-DD'
    )

    notify_sms: Mapped[bool] = mapped_column(Boolean, default=False)
    notify_email: Mapped[bool] = mapped_column(Boolean, default=False)
    notify_push: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
    )

    profile: Mapped[Profile] = relationship(back_populates='subscriptions')

    __table_args__ = (
        UniqueConstraint('user_id', 'flight_id', 'flight_date', name='uq_subscriptions_user_flight'),
        # Dispatcher lookup
        Index('ix_subscriptions_flight', 'flight_id', 'flight_date'),
    )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'flight_id': self.flight_id,
            'flight_date': self.flight_date,
            'notify_sms': bool(self.notify_sms),
            'notify_email': bool(self.notify_email),
            'notify_push': bool(self.notify_push),
        }

    def __repr__(self) -> str:
        return f'<NotificationSubscription {self.user_id} {self.flight_id} {self.flight_date}>'


class NotificationLog(Base):
    """Outcome of one delivery attempt on one channel."""

    __tablename__ = 'notification_log'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    subscription_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey('notification_subscriptions.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )

    channel: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment='sms | email | push'
    )

    status_change: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment='Human-readable transition, e.g. "- → LANDED"'
    )

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        index=True,
    )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'subscription_id': self.subscription_id,
            'channel': self.channel,
            'status_change': self.status_change,
            'success': self.success,
            'error_message': self.error_message,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
        }

    def __repr__(self) -> str:
        outcome = 'ok' if self.success else 'failed'
        return f'<NotificationLog {self.subscription_id} {self.channel} {outcome}>'
