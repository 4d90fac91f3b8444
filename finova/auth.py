"""
Bearer-token authentication and role guards.

Tokens are HS256 JWTs carrying ``userId``, ``email`` and ``role``. The
decorators load the user on every request so a deactivated account is
locked out immediately, not when its token expires.
"""
from functools import wraps

import jwt
from flask import current_app, g, request

from .errors import AuthenticationError, AuthorizationError
from .extensions import db
from .models import Trainer, User
from .utils import utcnow


def issue_token(user):
    payload = {
        'userId': user.id,
        'email': user.email,
        'role': user.role,
        'exp': utcnow() + current_app.config['JWT_EXPIRES'],
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm='HS256')


def decode_token(token):
    try:
        return jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Token expired')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Invalid token')


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def optional_user():
    """Return the authenticated user when a valid bearer token is sent, else None."""
    token = _bearer_token()
    if not token:
        return None
    user = db.session.get(User, decode_token(token).get('userId'))
    if not user or not user.is_active:
        return None
    return user


def token_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise AuthenticationError('Authentication required')
        payload = decode_token(token)
        user = db.session.get(User, payload.get('userId'))
        if not user:
            raise AuthenticationError('Invalid token')
        if not user.is_active:
            raise AuthenticationError('Account is deactivated')
        g.current_user = user
        return view(*args, **kwargs)
    return wrapper


def roles_required(*roles):
    """Authenticate, then allow only the listed roles. Admins are always allowed."""
    def decorator(view):
        @wraps(view)
        def guarded(*args, **kwargs):
            user = g.current_user
            if user.role != 'admin' and user.role not in roles:
                raise AuthorizationError('Access denied')
            return view(*args, **kwargs)
        return token_required(guarded)
    return decorator


def trainer_required(view):
    @wraps(view)
    def guarded(*args, **kwargs):
        user = g.current_user
        if user.role != 'trainer':
            raise AuthorizationError('Access denied')
        trainer = Trainer.query.filter_by(user_id=user.id).first()
        if not trainer:
            raise AuthorizationError('Trainer profile not found')
        g.trainer = trainer
        return view(*args, **kwargs)
    return token_required(guarded)
