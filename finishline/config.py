"""
FinishLine
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'finishline_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _env_flag(name, default="false"):
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Slack
    SLACK_BOT_TOKEN = os.getenv("SLACK_BOT_TOKEN")
    SLACK_EBOARD_CHANNEL = os.getenv("SLACK_EBOARD_CHANNEL")
    # Notifications only leave the process when this is on (production default)
    SLACK_NOTIFICATIONS_ENABLED = _env_flag("SLACK_NOTIFICATIONS_ENABLED")

    # Links embedded in Slack messages
    APP_BASE_URL = os.getenv("APP_BASE_URL", "https://finishlinebyner.com")

    # Accepted CRs whose work was implemented longer ago than this are stale
    CR_STALE_AFTER_DAYS = int(os.getenv("CR_STALE_AFTER_DAYS", "5"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    RATELIMIT_ENABLED = False
    SLACK_BOT_TOKEN = None
    SLACK_NOTIFICATIONS_ENABLED = False
    CR_STALE_AFTER_DAYS = 5


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Heroku-style postgres:// URLs are rejected by SQLAlchemy 2.0
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    SLACK_NOTIFICATIONS_ENABLED = _env_flag("SLACK_NOTIFICATIONS_ENABLED", "true")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
