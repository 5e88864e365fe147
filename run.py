#!/usr/bin/env python3
"""Entry point for the padel live tournament desk."""
import os
from padel_live.app import create_app, socketio
from padel_live.services.timeout_processor import start_timeout_processor

config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

if __name__ == '__main__':
    if app.config.get('TIMEOUT_PROCESSOR_ENABLED'):
        start_timeout_processor(app)
    port = int(os.environ.get('PORT', 5001))
    print(f"Padel live starting on http://localhost:{port}")
    socketio.run(
        app, host='0.0.0.0', port=port,
        debug=(config_name == 'development'),
        use_reloader=False,
        allow_unsafe_werkzeug=True,
    )
