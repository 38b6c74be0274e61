"""
API module for Arriva.

Provides REST endpoints for:
- Flight refresh trigger and stored flights
- Profiles, subscriptions and the notification log
"""

from arriva.api.flights import flights_bp
from arriva.api.notifications import notifications_bp

__all__ = ['flights_bp', 'notifications_bp']
