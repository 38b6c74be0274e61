"""
Exception hierarchy for the ingestion and notification pipeline.

Each error maps to a recovery point:
- FetchError / ParseEmptyError: pipeline falls back to mock flights
- PersistError: logged, already-decided notifications still go out
- ChannelDeliveryError: logged per (subscription, channel)
- MissingCredentialError: channel disabled for the whole run
"""

from typing import Optional


class ArrivaError(Exception):
    """Base class for all pipeline errors."""


class FetchError(ArrivaError):
    """Arrivals board unreachable or returned a non-2xx response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseEmptyError(ArrivaError):
    """Board document yielded zero accepted flight rows."""


class PersistError(ArrivaError):
    """Flight upsert failed."""


class ChannelDeliveryError(ArrivaError):
    """A channel adapter failed to deliver one notification."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingCredentialError(ArrivaError):
    """A notification provider is not configured."""

    def __init__(self, channel: str, message: str):
        super().__init__(message)
        self.channel = channel
