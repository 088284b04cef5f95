"""
PawLedger Practice Platform
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Configure CORS - allow the practice frontend
    cors_origins = [
        'http://localhost:5173',
        'http://127.0.0.1:5173',
    ]
    if os.getenv('FRONTEND_URL'):
        cors_origins.append(os.getenv('FRONTEND_URL'))
    CORS(app, origins=cors_origins, supports_credentials=True,
         allow_headers=['Content-Type', 'Authorization', 'X-Tenant-ID', 'X-Actor-ID'])

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Background award retries (production or ENABLE_SCHEDULER=true)
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'pawledger'}

    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.clients import clients_bp
    from .api.loyalty import loyalty_bp
    from .api.appointments import appointments_bp

    app.register_blueprint(clients_bp)
    app.register_blueprint(loyalty_bp)
    app.register_blueprint(appointments_bp)


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from .utils.errors import exception_response
    from .utils.exceptions import PawLedgerError

    @app.errorhandler(PawLedgerError)
    def business_error(error):
        return exception_response(error)

    @app.errorhandler(400)
    def bad_request(error):
        return {'error': {'message': str(error), 'code': 'INVALID_REQUEST'}}, 400

    @app.errorhandler(404)
    def not_found(error):
        return {'error': {'message': str(error), 'code': 'NOT_FOUND'}}, 404

    @app.errorhandler(500)
    def internal_error(error):
        return {'error': {'message': 'Internal server error', 'code': 'INTERNAL_ERROR'}}, 500
