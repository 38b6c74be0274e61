"""
Flight data API endpoints.

Provides endpoints for:
- POST /api/flights/refresh - Run the ingestion pipeline once
- GET  /api/flights         - Stored flights for a date
"""

import logging
import time
from datetime import date, datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from arriva.ingestion.fallback import mock_flights
from arriva.ingestion.pipeline import SOURCE_MOCK

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flights')


@flights_bp.route('/refresh', methods=['POST'])
def refresh_flights():
    """
    Fetch the board, persist it and notify subscribers of status changes.

    Always answers 200 with a well-formed flights payload:
    {flights, source: live|mock, statusChanges}. Unexpected failures add
    an `error` field and serve the mock flights.
    """
    pipeline = current_app.config['INGESTION_PIPELINE']

    try:
        result = pipeline.run_once()
    except Exception as e:
        logger.exception('Flight refresh failed')
        return jsonify({
            'flights': [f.to_dict() for f in mock_flights()],
            'source': SOURCE_MOCK,
            'statusChanges': 0,
            'error': str(e),
        })

    return jsonify(result.to_dict())


@flights_bp.route('', methods=['GET'])
def list_flights():
    """
    List stored flights for a date.

    Query parameters:
    - date: ISO date (default today)
    """
    start_time = time.perf_counter()

    flight_date = request.args.get('date') or date.today().isoformat()
    try:
        date.fromisoformat(flight_date)
    except ValueError:
        return jsonify({'error': f'Invalid date: {flight_date}'}), 400

    store = current_app.config['FLIGHT_STORE']
    flights = store.read_by_date(flight_date)

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'flights': [f.to_dict() for f in flights],
        'count': len(flights),
        'date': flight_date,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })
