import logging

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..responses import ok
from ..utils import utcnow

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)

API_NAME = 'Finova Fitness API'
API_VERSION = '1.0.0'


@health_bp.route('/health', methods=['GET'])
def health():
    try:
        db.session.execute(text('SELECT 1'))
        database = 'connected'
    except SQLAlchemyError:
        logger.exception('Database health check failed')
        db.session.rollback()
        database = 'disconnected'
    body = {
        'status': 'ok' if database == 'connected' else 'degraded',
        'database': database,
        'timestamp': utcnow().isoformat() + 'Z',
    }
    return ok(body, status=200 if database == 'connected' else 503)


@health_bp.route('', methods=['GET'])
def index():
    prefixes = sorted({rule.rule.split('/')[2] for rule in current_app.url_map.iter_rules()
                       if rule.rule.startswith('/api/') and len(rule.rule.split('/')) > 2})
    return ok({
        'name': API_NAME,
        'version': API_VERSION,
        'endpoints': [f'/api/{prefix}' for prefix in prefixes if prefix],
    })
