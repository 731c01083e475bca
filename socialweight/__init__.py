"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints and the JSON
error handlers shared by every SW endpoint.
"""
import logging
import traceback

from flask import Flask, jsonify

logger = logging.getLogger('socialweight')


def create_app():
    """Create and configure the Flask application."""
    from socialweight.config import APP_ENV, SECRET_KEY
    from socialweight.logging_config import configure_logging
    from socialweight.scoring.weights import ConfigurationError
    from socialweight.services.auth import AuthError
    from socialweight.services.store import ErrorKind, StoreError

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = SECRET_KEY

    # ── Error handlers ──────────────────────────────────────────────────
    # Callers always get either a score or a coded error body.

    def _server_error(e, code):
        body = {'error': str(e) or e.__class__.__name__, 'code': code}
        if APP_ENV != 'production':
            body['stack'] = traceback.format_exception(type(e), e, e.__traceback__)
        return jsonify(body), 500

    @app.errorhandler(AuthError)
    def handle_auth_error(e):
        return jsonify({'error': str(e), 'code': 'UNAUTHORIZED'}), 401

    @app.errorhandler(ConfigurationError)
    def handle_config_error(e):
        logger.error("SW configuration error: %s", e)
        return _server_error(e, 'CONFIG_ERROR')

    @app.errorhandler(StoreError)
    def handle_store_error(e):
        if e.kind == ErrorKind.ACCESS_DENIED:
            logger.warning("Access denied surfaced to caller: %s", e)
            return jsonify({'error': 'Permission denied', 'code': 'ACCESS_DENIED'}), 403
        logger.error("Data store failure (%s): %s", e.kind.value, e, exc_info=True)
        return _server_error(e, e.kind.value.upper())

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        from werkzeug.exceptions import HTTPException
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description, 'code': e.name.upper().replace(' ', '_')}), e.code
        logger.error("Unhandled error: %s", e, exc_info=True)
        return _server_error(e, 'INTERNAL_ERROR')

    # Register blueprints
    from socialweight.routes.health import bp as health_bp
    from socialweight.routes.sw import bp as sw_bp
    from socialweight.routes.admin import bp as admin_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(sw_bp)
    app.register_blueprint(admin_bp)

    # Schema is managed by Alembic, no create_all() here
    from socialweight.database import import_models
    import_models()

    return app
