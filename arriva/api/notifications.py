"""
Subscription and notification API endpoints.

Provides endpoints for:
- PUT    /api/profiles/<user_id>      - Set a user's contact details
- POST   /api/subscriptions           - Subscribe to a flight
- DELETE /api/subscriptions/<id>      - Unsubscribe
- GET    /api/notifications/log       - Latest delivery attempts (admin)
"""

import logging
from datetime import date

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import select

from arriva.models import NotificationLog, NotificationSubscription, Profile, get_session

logger = logging.getLogger(__name__)

notifications_bp = Blueprint('notifications', __name__, url_prefix='/api')

_CONTACT_FIELDS = ('display_name', 'phone', 'notification_email', 'push_token')
_CHANNEL_FLAGS = ('notify_sms', 'notify_email', 'notify_push')


def _session_factory():
    return current_app.config['SESSION_FACTORY']


@notifications_bp.route('/profiles/<user_id>', methods=['PUT'])
def update_profile(user_id: str):
    """Create or update contact details. Omitted fields are left as is."""
    data = request.get_json(silent=True) or {}

    with get_session(_session_factory()) as session:
        profile = session.get(Profile, user_id)
        if profile is None:
            profile = Profile(user_id=user_id)
            session.add(profile)
        for name in _CONTACT_FIELDS:
            if name in data:
                setattr(profile, name, data[name] or None)

    return jsonify({'user_id': user_id, **{name: getattr(profile, name) for name in _CONTACT_FIELDS}})


@notifications_bp.route('/subscriptions', methods=['POST'])
def create_subscription():
    """
    Subscribe a user to one flight on one day.

    Body: {user_id, flight_id, flight_date, notify_sms, notify_email, notify_push}
    Re-posting the same (user, flight, date) updates the channel flags.
    """
    data = request.get_json(silent=True) or {}

    missing = [k for k in ('user_id', 'flight_id', 'flight_date') if not data.get(k)]
    if missing:
        return jsonify({'error': f'Missing fields: {", ".join(missing)}'}), 400

    try:
        date.fromisoformat(data['flight_date'])
    except (TypeError, ValueError):
        return jsonify({'error': f'Invalid flight_date: {data["flight_date"]}'}), 400

    with get_session(_session_factory()) as session:
        if session.get(Profile, data['user_id']) is None:
            session.add(Profile(user_id=data['user_id']))

        sub = session.scalars(
            select(NotificationSubscription).where(
                NotificationSubscription.user_id == data['user_id'],
                NotificationSubscription.flight_id == data['flight_id'],
                NotificationSubscription.flight_date == data['flight_date'],
            )
        ).first()
        created = sub is None
        if created:
            sub = NotificationSubscription(
                user_id=data['user_id'],
                flight_id=data['flight_id'],
                flight_date=data['flight_date'],
            )
            session.add(sub)

        for flag in _CHANNEL_FLAGS:
            setattr(sub, flag, bool(data.get(flag, False)))
        session.flush()
        payload = sub.to_dict()

    logger.info(f'Subscription {payload["id"]} for {payload["flight_id"]} {payload["flight_date"]}')
    return jsonify(payload), 201 if created else 200


@notifications_bp.route('/subscriptions/<int:subscription_id>', methods=['DELETE'])
def delete_subscription(subscription_id: int):
    """Remove a subscription and its log entries."""
    with get_session(_session_factory()) as session:
        sub = session.get(NotificationSubscription, subscription_id)
        if sub is None:
            return jsonify({'error': 'Not found'}), 404
        session.delete(sub)

    return jsonify({'deleted': subscription_id})


@notifications_bp.route('/notifications/log', methods=['GET'])
def notification_log():
    """
    Latest notification attempts, newest first.

    Query parameters:
    - limit: int, max results to return (default 100)
    """
    limit = max(1, min(request.args.get('limit', 100, type=int), 500))

    with _session_factory()() as session:
        entries = session.scalars(
            select(NotificationLog)
            .order_by(NotificationLog.sent_at.desc(), NotificationLog.id.desc())
            .limit(limit)
        ).all()
        payload = [e.to_dict() for e in entries]

    return jsonify({'entries': payload, 'count': len(payload)})
