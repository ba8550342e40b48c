"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Error tracking (only used when ENV == 'production')
    SENTRY_DSN = os.getenv('SENTRY_DSN')

    # Redis Cache Configuration
    # Parsed geofences are derived data; losing Redis only costs re-parsing
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'delivery')
    GEOFENCE_CACHE_TTL = int(os.getenv('GEOFENCE_CACHE_TTL', '86400'))  # 24 hours

    # Delivery coverage
    NEARBY_PICKUP_LIMIT = int(os.getenv('NEARBY_PICKUP_LIMIT', '3'))
    NEARBY_RADIUS_KM = float(os.getenv('NEARBY_RADIUS_KM', '10'))
    NEARBY_MAX_RADIUS_KM = float(os.getenv('NEARBY_MAX_RADIUS_KM', '50'))

    # Pricing defaults
    DEFAULT_ZONE = os.getenv('DEFAULT_ZONE', 'capital')
    DEFAULT_SERVICE_TYPE = os.getenv('DEFAULT_SERVICE_TYPE', 'pickup')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    CACHE_ENABLED = False
    SENTRY_DSN = None
