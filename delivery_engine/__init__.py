"""Flask application factory for the delivery engine."""
import logging

from flask import Flask


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Engine loggers follow LOG_LEVEL; handlers come from Flask/Gunicorn
    logging.getLogger('delivery_engine').setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize Sentry for error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
        )

    # Initialize Redis Cache (parsed geofences)
    from delivery_engine.services.cache_service import init_cache
    init_cache(app)

    # Register CLI commands
    from delivery_engine.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Delivery engine ready (ENV={app.config.get('ENV')})")
    return app
