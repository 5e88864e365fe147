import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _normalize_database_url(raw_url):
    if not raw_url:
        return raw_url
    if raw_url.startswith('postgres://'):
        return raw_url.replace('postgres://', 'postgresql://', 1)
    return raw_url


class BaseConfig:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-prod')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Timeout processor
    TIMEOUT_PROCESSOR_ENABLED = _env_bool('TIMEOUT_PROCESSOR_ENABLED', True)
    TIMEOUT_SWEEP_INTERVAL_SECONDS = _env_int('TIMEOUT_SWEEP_INTERVAL_SECONDS', 60)
    CHECK_IN_TOLERANCE_MINUTES = _env_int('CHECK_IN_TOLERANCE_MINUTES', 15)
    BACKFILL_GUARD_MINUTES = _env_int('BACKFILL_GUARD_MINUTES', 120)
    DEFAULT_TOURNAMENT_TIMEZONE = os.environ.get('DEFAULT_TOURNAMENT_TIMEZONE', 'America/Santiago')
    # Court assignment
    PRE_ASSIGN_MIN_PLAYING_MINUTES = _env_int('PRE_ASSIGN_MIN_PLAYING_MINUTES', 40)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(
        os.environ.get(
            'DATABASE_URL',
            'sqlite:///' + os.path.join(basedir, '..', 'padel_live_dev.db')
        )
    )


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    TIMEOUT_PROCESSOR_ENABLED = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get('DATABASE_URL'))


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
