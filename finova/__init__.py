"""
Finova Fitness backend.

``create_app`` builds the Flask application: configuration, database,
password hashing, logging, error handlers, the ``/api`` blueprints and the
``flask init-db`` command.
"""
import logging
import os
import time

from flask import Flask, g, request

from .config import config_by_name
from .extensions import bcrypt, db
from .logger import setup_logger

logger = logging.getLogger('finova.requests')


def create_app(config_name=None):
    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    app = Flask(__name__)
    app.config.from_object(config_by_name.get(config_name, config_by_name['development']))

    db.init_app(app)
    bcrypt.init_app(app)
    setup_logger('finova', app.config['LOG_LEVEL'], app.config['LOG_FILE'])

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop('request_started', None)
        duration = (time.perf_counter() - started) * 1000 if started else 0.0
        logger.info('%s %s %s %.1fms', request.method, request.path, response.status_code, duration)
        return response

    from .errors import register_error_handlers
    from .routes import register_blueprints
    from .cli import register_commands

    register_error_handlers(app)
    register_blueprints(app)
    register_commands(app)

    return app
