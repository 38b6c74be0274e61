"""
Arriva Flask Application.

Main entry point for the web application. Initializes:
- Database schema
- Ingestion pipeline (board client, store, notification dispatcher)
- Optional scheduled ingestion loop
- API routes

Usage:
    python -m arriva.app

Or with gunicorn:
    gunicorn "arriva.app:create_app()"
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from arriva.api import flights_bp, notifications_bp
from arriva.config import AppConfig, load_config
from arriva.ingestion.board_client import BoardClient
from arriva.ingestion.pipeline import IngestionPipeline
from arriva.ingestion.store import FlightStore
from arriva.models import create_db_engine, create_session_factory, init_db
from arriva.services.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def build_pipeline(config: AppConfig, session_factory) -> IngestionPipeline:
    """Wire the pipeline components from configuration."""
    return IngestionPipeline(
        client=BoardClient(config.board),
        store=FlightStore(session_factory),
        dispatcher=NotificationDispatcher.from_config(config, session_factory),
    )


def create_app(
    config: Optional[AppConfig] = None,
    pipeline: Optional[IngestionPipeline] = None,
    start_ingestion: bool = True,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        config: Application configuration (loaded from environment if None)
        pipeline: Pre-built pipeline, mainly for tests
        start_ingestion: Whether to start the scheduled ingestion loop.
                        Set to False for testing.

    Returns:
        Configured Flask application instance.
    """
    config = config or load_config()
    configure_logging(config.debug)

    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.secret_key
    app.config['ARRIVA'] = config

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    # Initialize database
    logger.info('Initializing database...')
    engine = create_db_engine(config.database, echo=config.debug)
    init_db(engine)
    session_factory = create_session_factory(engine)

    if pipeline is None:
        pipeline = build_pipeline(config, session_factory)

    app.config['SESSION_FACTORY'] = session_factory
    app.config['FLIGHT_STORE'] = FlightStore(session_factory)
    app.config['INGESTION_PIPELINE'] = pipeline

    # Register API blueprints
    app.register_blueprint(flights_bp)
    app.register_blueprint(notifications_bp)

    interval = config.ingestion.interval_seconds
    if start_ingestion and interval > 0:
        pipeline.start_background(interval)
        logger.info(f'Scheduled ingestion every {interval}s')
    else:
        logger.info('Scheduled ingestion disabled; use POST /api/flights/refresh')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok', 'ingestion': pipeline.stats}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    config = load_config()
    app = create_app(config)

    # Get port from environment or default
    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting Arriva on http://localhost:{port}')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,  # Disable reloader to prevent duplicate ingestion threads
    )


if __name__ == '__main__':
    run_development_server()
