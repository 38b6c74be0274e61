"""
Notification channel adapters.

One adapter per provider:
- SMS:   Twilio Messages API (basic auth, form POST)
- Email: Resend emails API (bearer auth, JSON POST)
- Push:  Firebase Cloud Messaging legacy HTTP API (key auth, JSON POST)

Adapters only talk HTTP. They run inside dispatcher worker threads, so
they never touch the database; side effects such as clearing a dead push
token are left to the dispatcher based on the reported status code.
"""

import logging
from abc import ABC, abstractmethod
from html import escape
from typing import Dict, Optional, Tuple

import requests

from arriva.config import AppConfig, FcmConfig, ResendConfig, TwilioConfig
from arriva.errors import ChannelDeliveryError, MissingCredentialError
from arriva.ingestion.changes import StatusChange
from arriva.models.notification import Channel

logger = logging.getLogger(__name__)

TWILIO_API_URL = 'https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json'
RESEND_API_URL = 'https://api.resend.com/emails'
FCM_API_URL = 'https://fcm.googleapis.com/fcm/send'

# Push gateway answer for an unregistered/expired token
HTTP_GONE = 410

STATUS_COLORS = {
    'LANDED': '#22c55e',
    'DELAYED': '#f59e0b',
    'CANCELLED': '#ef4444',
}
NEUTRAL_COLOR = '#64748b'

# Cap stored provider error bodies
MAX_ERROR_LENGTH = 500


def status_color(status: str) -> str:
    """Highlight colour for a board status in email bodies."""
    return STATUS_COLORS.get((status or '').strip().upper(), NEUTRAL_COLOR)


class NotificationChannel(ABC):
    """Base class for delivery channels."""

    channel: Channel

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    @abstractmethod
    def send(self, destination: str, message: str, change: StatusChange) -> None:
        """
        Deliver one notification.

        Args:
            destination: Phone number, email address or push token
            message: Human-readable notification text
            change: The status transition being announced

        Raises:
            ChannelDeliveryError on any failure, including timeouts
        """

    def _post(self, url: str, **kwargs) -> requests.Response:
        """POST with the channel timeout; non-2xx and transport errors raise."""
        try:
            response = requests.post(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise ChannelDeliveryError(f'{self.channel.value} provider timed out: {e}') from e
        except requests.exceptions.RequestException as e:
            raise ChannelDeliveryError(f'{self.channel.value} request failed: {e}') from e

        if not response.ok:
            raise ChannelDeliveryError(
                response.text[:MAX_ERROR_LENGTH] or f'HTTP {response.status_code}',
                status_code=response.status_code,
            )
        return response


class TwilioSmsChannel(NotificationChannel):
    """SMS via Twilio."""

    channel = Channel.SMS

    def __init__(self, account_sid: str, auth_token: str, from_number: str, timeout: float = 10):
        super().__init__(timeout)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    @classmethod
    def from_config(cls, twilio: TwilioConfig, timeout: float = 10) -> 'TwilioSmsChannel':
        if not twilio.is_configured:
            raise MissingCredentialError(Channel.SMS.value, 'Twilio credentials not configured')
        return cls(twilio.account_sid, twilio.auth_token, twilio.from_number, timeout=timeout)

    def send(self, destination: str, message: str, change: StatusChange) -> None:
        self._post(
            TWILIO_API_URL.format(account_sid=self.account_sid),
            auth=(self.account_sid, self.auth_token),
            data={
                'To': destination,
                'From': self.from_number,
                'Body': message,
            },
        )
        logger.debug(f'SMS sent for {change.record.flight_id}')


class ResendEmailChannel(NotificationChannel):
    """Email via Resend."""

    channel = Channel.EMAIL

    def __init__(self, api_key: str, from_address: str, timeout: float = 10):
        super().__init__(timeout)
        self.api_key = api_key
        self.from_address = from_address

    @classmethod
    def from_config(cls, resend: ResendConfig, timeout: float = 10) -> 'ResendEmailChannel':
        if not resend.is_configured:
            raise MissingCredentialError(Channel.EMAIL.value, 'Resend API key not configured')
        return cls(resend.api_key, resend.from_address, timeout=timeout)

    @staticmethod
    def render_html(change: StatusChange) -> str:
        """Flight alert email body."""
        flight = change.record
        # Board text is untrusted
        flight_id, origin = escape(flight.flight_id), escape(flight.origin)
        old_status, new_status = escape(change.old_status), escape(change.new_status)
        return f"""
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #0ea5e9;">ARRIVA.MV Flight Alert</h1>
  <div style="background: #f8fafc; padding: 20px; border-radius: 8px;">
    <h2>Flight {flight_id}</h2>
    <p><strong>From:</strong> {origin}</p>
    <p><strong>Scheduled:</strong> {escape(flight.scheduled_time)}</p>
    <p><strong>Status Change:</strong> {old_status} &rarr; <span style="color: {status_color(change.new_status)}; font-weight: bold;">{new_status}</span></p>
  </div>
  <p style="color: #64748b; font-size: 12px; margin-top: 20px;">
    You received this because you subscribed to flight notifications on ARRIVA.MV
  </p>
</div>
"""

    def send(self, destination: str, message: str, change: StatusChange) -> None:
        self._post(
            RESEND_API_URL,
            headers={'Authorization': f'Bearer {self.api_key}'},
            json={
                'from': self.from_address,
                'to': [destination],
                'subject': f'Flight {change.record.flight_id} Status Update',
                'html': self.render_html(change),
            },
        )
        logger.debug(f'Email sent for {change.record.flight_id}')


class FcmPushChannel(NotificationChannel):
    """Push via Firebase Cloud Messaging."""

    channel = Channel.PUSH

    def __init__(self, server_key: str, icon: str = '/icon-512.png', timeout: float = 10):
        super().__init__(timeout)
        self.server_key = server_key
        self.icon = icon

    @classmethod
    def from_config(cls, fcm: FcmConfig, timeout: float = 10) -> 'FcmPushChannel':
        if not fcm.is_configured:
            raise MissingCredentialError(Channel.PUSH.value, 'Firebase credentials not configured')
        return cls(fcm.server_key, icon=fcm.icon, timeout=timeout)

    def send(self, destination: str, message: str, change: StatusChange) -> None:
        flight = change.record
        self._post(
            FCM_API_URL,
            headers={'Authorization': f'key={self.server_key}'},
            json={
                'to': destination,
                'notification': {
                    'title': f'Flight {flight.flight_id} Update',
                    'body': message,
                    'icon': self.icon,
                },
                'data': {
                    'flight_id': flight.flight_id,
                    'flight_date': flight.flight_date,
                    'status': change.new_status,
                },
            },
        )
        logger.debug(f'Push sent for {flight.flight_id}')


def build_channels(config: AppConfig) -> Tuple[Dict[Channel, NotificationChannel], Dict[Channel, str]]:
    """
    Build every configured channel adapter.

    Returns:
        (channels, skipped) where skipped maps each unconfigured channel
        to the reason it is disabled for this run
    """
    timeout = config.dispatch.channel_timeout_seconds
    factories = (
        (Channel.SMS, lambda: TwilioSmsChannel.from_config(config.twilio, timeout)),
        (Channel.EMAIL, lambda: ResendEmailChannel.from_config(config.resend, timeout)),
        (Channel.PUSH, lambda: FcmPushChannel.from_config(config.fcm, timeout)),
    )

    channels: Dict[Channel, NotificationChannel] = {}
    skipped: Dict[Channel, str] = {}
    for channel, factory in factories:
        try:
            channels[channel] = factory()
        except MissingCredentialError as e:
            skipped[channel] = str(e)
            logger.warning(f'{channel.value} notifications disabled: {e}')

    return channels, skipped
