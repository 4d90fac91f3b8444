"""
Error types raised by the API and the single handler that renders them.

Every error leaves the server as::

    {"success": false, "error": {"id", "message", "type", "timestamp", ...}}
"""
import datetime
import logging
import random
import string
import time

from flask import current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class FinovaError(Exception):
    status_code = 500
    default_message = 'An unexpected error occurred'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def name(self):
        return type(self).__name__


class ValidationError(FinovaError):
    status_code = 400
    default_message = 'Invalid request data'

    def __init__(self, message=None, field=None):
        super().__init__(message)
        self.field = field


class DatabaseError(FinovaError):
    status_code = 500
    default_message = 'Database operation failed'

    def __init__(self, message=None, original_error=None):
        super().__init__(message)
        self.original_error = original_error


class AuthenticationError(FinovaError):
    status_code = 401
    default_message = 'Authentication required'


class AuthorizationError(FinovaError):
    status_code = 403
    default_message = 'Access denied'


class NotFoundError(FinovaError):
    status_code = 404
    default_message = 'Resource not found'


class ConflictError(FinovaError):
    status_code = 409
    default_message = 'Resource conflict'


FRIENDLY_MESSAGES = {
    'ValidationError': {
        'Check-in time cannot be in the future': 'Check-in time cannot be in the future',
        'Search term must be at least 2 characters long': 'Please enter at least 2 characters to search',
        'Search term must be 100 characters or less': 'Search term is too long',
        'Start date cannot be after end date': 'Invalid date range',
        'Date range cannot exceed 1 year': 'Date range is too large',
    },
    'DatabaseError': {
        'Failed to search active members': 'Unable to search members at this time',
        'Failed to record check-in': 'Unable to record check-in at this time',
        'Failed to award loyalty points': 'Unable to award loyalty points',
    },
    'AuthenticationError': {
        'Authentication required': 'Please log in to access this feature',
        'Invalid token': 'Your session has expired. Please log in again',
        'Token expired': 'Your session has expired. Please log in again',
    },
    'AuthorizationError': {
        'Access denied': 'You do not have permission to access this feature',
    },
    'NotFoundError': {
        'Member not found': 'Member not found in the system',
    },
}


def generate_error_id():
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f'err_{int(time.time() * 1000)}_{suffix}'


def friendly_message(error_type, message):
    return FRIENDLY_MESSAGES.get(error_type, {}).get(message, message or FinovaError.default_message)


def error_response(error_type, message, status_code, field=None, original=None):
    error_id = generate_error_id()
    timestamp = datetime.datetime.now(datetime.timezone.utc).isoformat()
    user = getattr(g, 'current_user', None)

    log = logger.error if status_code >= 500 else logger.warning
    log('Error %s: %s (%s %s, status=%s, user=%s)', error_id, message,
        request.method, request.path, status_code, user.id if user else None,
        exc_info=original if status_code >= 500 else None)

    body = {
        'id': error_id,
        'message': friendly_message(error_type, message),
        'type': error_type,
        'timestamp': timestamp,
    }
    if field:
        body['field'] = field
    if current_app.config.get('EXPOSE_ERROR_DETAILS'):
        body['details'] = {'originalMessage': message, 'url': request.path, 'method': request.method}
    return jsonify({'success': False, 'error': body}), status_code


def register_error_handlers(app):
    from .extensions import db

    @app.errorhandler(FinovaError)
    def handle_finova_error(error):
        if isinstance(error, DatabaseError):
            db.session.rollback()
        return error_response(error.name, error.message, error.status_code,
                              field=getattr(error, 'field', None),
                              original=getattr(error, 'original_error', None) or error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        error_type = ''.join(part.capitalize() for part in (error.name or 'Error').split())
        return error_response(error_type, error.description, error.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        return error_response('InternalServerError', 'An unexpected error occurred', 500, original=error)
