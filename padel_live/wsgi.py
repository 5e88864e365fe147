"""WSGI entrypoint used by Gunicorn."""
import os

from padel_live.app import create_app
from padel_live.services.timeout_processor import start_timeout_processor

config_name = os.environ.get('FLASK_ENV', 'production')
app = create_app(config_name)

# Run with a single worker; every worker would start its own sweep loop.
if app.config.get('TIMEOUT_PROCESSOR_ENABLED'):
    start_timeout_processor(app)
