"""
Arriva Backend Package.

Arrivals-board ingestion and flight status notifications built with
Flask, SQLAlchemy and requests.

Modules:
    api/         REST endpoints for the refresh trigger, flights and subscriptions
    models/      SQLAlchemy ORM models (Flight, Profile, NotificationSubscription, NotificationLog)
    ingestion/   Board client, HTML parser, change detection, store and pipeline
    services/    SMS/email/push channel adapters and the notification dispatcher
    config.py    Configuration object built from environment variables
    errors.py    Pipeline exception hierarchy
"""

__version__ = '1.0.0'
