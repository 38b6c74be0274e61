"""
Notification dispatcher - fans status changes out to subscribers.

For each status change:
1. Load subscriptions for (flight_id, flight_date) with their profiles
2. Plan one attempt per (subscription, channel) where the channel is
   enabled, the contact point exists and the provider is configured
3. Send on a bounded thread pool; every attempt yields a DeliveryResult
4. Write one NotificationLog row per attempt and clear push tokens the
   gateway reported as gone

Failures are isolated to a single (subscription, channel) attempt.
Database work stays on the calling thread; workers only do HTTP.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, sessionmaker

from arriva.config import AppConfig
from arriva.errors import ChannelDeliveryError
from arriva.ingestion.changes import StatusChange
from arriva.models import NotificationLog, NotificationSubscription, Profile, get_session
from arriva.models.notification import Channel
from arriva.services.channels import HTTP_GONE, NotificationChannel, build_channels

logger = logging.getLogger(__name__)


@dataclass
class Subscriber:
    """Subscription with the owner's contact details denormalized in."""
    subscription_id: int
    user_id: str
    notify_sms: bool = False
    notify_email: bool = False
    notify_push: bool = False
    phone: Optional[str] = None
    email: Optional[str] = None
    push_token: Optional[str] = None

    @classmethod
    def from_subscription(cls, sub: NotificationSubscription) -> 'Subscriber':
        profile = sub.profile
        return cls(
            subscription_id=sub.id,
            user_id=sub.user_id,
            notify_sms=bool(sub.notify_sms),
            notify_email=bool(sub.notify_email),
            notify_push=bool(sub.notify_push),
            phone=profile.phone if profile else None,
            email=profile.notification_email if profile else None,
            push_token=profile.push_token if profile else None,
        )

    def wants(self, channel: Channel) -> bool:
        return {
            Channel.SMS: self.notify_sms,
            Channel.EMAIL: self.notify_email,
            Channel.PUSH: self.notify_push,
        }[channel]

    def contact_for(self, channel: Channel) -> Optional[str]:
        return {
            Channel.SMS: self.phone,
            Channel.EMAIL: self.email,
            Channel.PUSH: self.push_token,
        }[channel]


@dataclass
class DeliveryResult:
    """Outcome of one (subscription, channel) attempt."""
    subscription_id: int
    user_id: str
    channel: Channel
    status_change: str
    success: bool
    error: Optional[str] = None
    status_code: Optional[int] = None
    destination: Optional[str] = None

    @property
    def token_gone(self) -> bool:
        """Push gateway says this token will never work again."""
        return self.channel == Channel.PUSH and self.status_code == HTTP_GONE


@dataclass
class DispatchReport:
    """Aggregate outcome of one dispatch batch."""
    results: List[DeliveryResult] = field(default_factory=list)
    skipped_channels: Dict[Channel, str] = field(default_factory=dict)
    cleared_push_tokens: int = 0
    log_error: Optional[str] = None
    lookup_errors: List[str] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {
            'attempted': len(self.results),
            'sent': self.sent,
            'failed': self.failed,
            'skipped_channels': {c.value: reason for c, reason in self.skipped_channels.items()},
            'cleared_push_tokens': self.cleared_push_tokens,
            'log_error': self.log_error,
            'lookup_errors': list(self.lookup_errors),
        }


# (change, subscriber, channel, destination)
_Attempt = Tuple[StatusChange, Subscriber, Channel, str]


class NotificationDispatcher:
    """
    Sends status change notifications on every enabled channel.

    Channels missing from `channels` are skipped for the whole run; the
    reason is reported once in DispatchReport.skipped_channels.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        channels: Dict[Channel, NotificationChannel],
        skipped_channels: Optional[Dict[Channel, str]] = None,
        max_workers: int = 4,
    ):
        self.session_factory = session_factory
        self.channels = channels
        self.skipped_channels = dict(skipped_channels or {})
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_config(cls, config: AppConfig, session_factory: sessionmaker) -> 'NotificationDispatcher':
        """Create dispatcher with every provider the configuration enables."""
        channels, skipped = build_channels(config)
        return cls(
            session_factory,
            channels,
            skipped_channels=skipped,
            max_workers=config.dispatch.max_workers,
        )

    def load_subscribers(self, flight_id: str, flight_date: str) -> List[Subscriber]:
        """Subscriptions for one flight/day with contact details."""
        with self.session_factory() as session:
            subs = session.scalars(
                select(NotificationSubscription)
                .options(joinedload(NotificationSubscription.profile))
                .where(
                    NotificationSubscription.flight_id == flight_id,
                    NotificationSubscription.flight_date == flight_date,
                )
                .order_by(NotificationSubscription.id)
            ).all()
            return [Subscriber.from_subscription(sub) for sub in subs]

    def _plan(self, changes: List[StatusChange], report: DispatchReport) -> List[_Attempt]:
        """
        Expand changes into individual channel attempts.

        A failed subscriber lookup is recorded in the report and only
        drops that one change.
        """
        attempts: List[_Attempt] = []
        for change in changes:
            flight_id, flight_date = change.record.flight_id, change.record.flight_date
            try:
                subscribers = self.load_subscribers(flight_id, flight_date)
            except SQLAlchemyError as e:
                report.lookup_errors.append(f'{flight_id} {flight_date}: {e}')
                logger.error(f'Subscriber lookup failed for {flight_id} {flight_date}: {e}')
                continue

            if not subscribers:
                logger.debug(f'No subscribers for {flight_id} {flight_date}')
                continue

            for subscriber in subscribers:
                for channel in Channel:
                    if channel not in self.channels:
                        continue
                    destination = subscriber.contact_for(channel)
                    if subscriber.wants(channel) and destination:
                        attempts.append((change, subscriber, channel, destination))

        return attempts

    def _attempt(self, attempt: _Attempt) -> DeliveryResult:
        """Run one send; never raises."""
        change, subscriber, channel, destination = attempt
        result = DeliveryResult(
            subscription_id=subscriber.subscription_id,
            user_id=subscriber.user_id,
            channel=channel,
            status_change=change.description,
            success=False,
            destination=destination,
        )

        try:
            self.channels[channel].send(destination, change.message, change)
            result.success = True
        except ChannelDeliveryError as e:
            result.error = str(e)
            result.status_code = e.status_code
            logger.warning(
                f'{channel.value} delivery failed for subscription '
                f'{subscriber.subscription_id}: {e}'
            )
        except Exception as e:
            # Adapter bug must not take down the rest of the batch
            result.error = f'{type(e).__name__}: {e}'
            logger.exception(
                f'Unexpected {channel.value} error for subscription {subscriber.subscription_id}'
            )

        return result

    def _record(self, report: DispatchReport) -> None:
        """
        Persist log entries and clear dead push tokens.

        Each log row and each token clear commits on its own, so one bad
        row only loses itself.
        """
        for r in report.results:
            try:
                with get_session(self.session_factory) as session:
                    session.add(NotificationLog(
                        subscription_id=r.subscription_id,
                        channel=r.channel.value,
                        status_change=r.status_change,
                        success=r.success,
                        error_message=r.error,
                    ))
            except SQLAlchemyError as e:
                report.log_error = str(e)
                logger.error(f'Failed to write notification log for subscription {r.subscription_id}: {e}')

        for r in report.results:
            if not r.token_gone:
                continue
            try:
                with get_session(self.session_factory) as session:
                    # Only clear the token we actually used
                    cleared = session.execute(
                        update(Profile)
                        .where(Profile.user_id == r.user_id, Profile.push_token == r.destination)
                        .values(push_token=None)
                    )
            except SQLAlchemyError as e:
                report.log_error = str(e)
                logger.error(f'Failed to clear push token for user {r.user_id}: {e}')
                continue
            if cleared.rowcount:
                report.cleared_push_tokens += 1
                logger.info(f'Cleared expired push token for user {r.user_id}')

    def dispatch(self, changes: List[StatusChange]) -> DispatchReport:
        """
        Notify every subscriber of every change.

        Returns a DispatchReport; delivery failures are reported, not raised.
        """
        report = DispatchReport(skipped_channels=dict(self.skipped_channels))
        if not changes:
            return report

        attempts = self._plan(changes, report)
        if not attempts:
            return report

        workers = min(self.max_workers, len(attempts))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            report.results = list(executor.map(self._attempt, attempts))

        self._record(report)

        logger.info(
            f'Dispatched {len(report.results)} notifications '
            f'({report.sent} sent, {report.failed} failed)'
        )
        return report
