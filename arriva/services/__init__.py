"""
Notification services.

Channel adapters for third-party providers (Twilio, Resend, FCM) and the
dispatcher that fans status changes out to subscribers, degrading
gracefully when a provider is down or unconfigured.
"""

from arriva.services.channels import (
    FcmPushChannel,
    NotificationChannel,
    ResendEmailChannel,
    TwilioSmsChannel,
    build_channels,
)
from arriva.services.dispatcher import DeliveryResult, DispatchReport, NotificationDispatcher, Subscriber

__all__ = [
    'DeliveryResult',
    'DispatchReport',
    'FcmPushChannel',
    'NotificationChannel',
    'NotificationDispatcher',
    'ResendEmailChannel',
    'Subscriber',
    'TwilioSmsChannel',
    'build_channels',
]
