import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_cors import CORS
from padel_live.config import config

db = SQLAlchemy()
socketio = SocketIO()

logger = logging.getLogger(__name__)


def _parse_allowed_origins(raw_origins):
    if not raw_origins:
        return '*'

    if isinstance(raw_origins, (list, tuple, set)):
        cleaned = [origin for origin in raw_origins if origin]
        return cleaned or '*'

    raw_text = str(raw_origins).strip()
    if not raw_text or raw_text == '*':
        return '*'

    origins = [origin.strip() for origin in raw_text.split(',') if origin.strip()]
    return origins or '*'


def _configure_logging(level_name):
    level = getattr(logging, str(level_name or 'INFO').upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    logging.getLogger('padel_live').setLevel(level)


def create_app(config_name='development'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    _configure_logging(app.config.get('LOG_LEVEL'))

    allowed_origins = _parse_allowed_origins(app.config.get('CORS_ALLOWED_ORIGINS', '*'))
    if str(config_name).strip().lower() == 'production':
        secret_key = str(app.config.get('SECRET_KEY') or '').strip()
        if not secret_key or secret_key == 'dev-secret-key-change-in-prod':
            raise RuntimeError('SECRET_KEY must be set to a non-default value in production')
        if allowed_origins == '*':
            raise RuntimeError('CORS_ALLOWED_ORIGINS must be explicitly set in production')

    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )
    CORS(app, resources={r'/api/*': {'origins': allowed_origins}})

    from padel_live.errors import TournamentDeskError

    @app.errorhandler(TournamentDeskError)
    def _handle_desk_error(exc):
        return jsonify({'error': exc.message}), exc.status_code

    from padel_live.routes.courts import courts_bp
    from padel_live.routes.matches import matches_bp
    from padel_live.routes.scheduled_matches import scheduled_matches_bp
    from padel_live.routes.timeouts import timeouts_bp

    app.register_blueprint(courts_bp, url_prefix='/api/courts')
    app.register_blueprint(matches_bp, url_prefix='/api/matches')
    app.register_blueprint(scheduled_matches_bp, url_prefix='/api/scheduled-matches')
    app.register_blueprint(timeouts_bp, url_prefix='/api/timeouts')

    with app.app_context():
        from padel_live import models  # noqa: F401
        db.create_all()

    from padel_live.services.timeout_processor import TimeoutProcessor
    app.extensions['timeout_processor'] = TimeoutProcessor.from_config(app.config)

    logger.info('App created with %s config', config_name)
    return app
