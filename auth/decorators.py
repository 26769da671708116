from functools import wraps
from flask import request, g

from auth.jwt_handler import verify_token
from models import db, User
from utils.errors import AuthenticationRequired, Forbidden


def _bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    return auth_header[len('Bearer '):].strip() or None


def authenticate(token, allow_inactive=False):
    """Resolve a bearer token to an account that may act; raises on failure"""
    payload = verify_token(token) if token else None
    if not payload:
        raise AuthenticationRequired('Invalid or expired token', code='INVALID_TOKEN')

    user = db.session.get(User, payload['user_id'])
    if not user or user.is_deleted:
        raise AuthenticationRequired('User not found', code='INVALID_TOKEN')

    if user.is_suspended:
        raise Forbidden('Your account has been suspended. Please contact support.',
                        code='ACCOUNT_SUSPENDED')

    if not user.is_active and not allow_inactive:
        raise Forbidden('Account deactivated', code='ACCOUNT_DEACTIVATED')

    return user


def require_auth(roles=None, optional=False, allow_inactive=False):
    """Authentication decorator"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            token = _bearer_token()

            if token is None:
                if optional:
                    request.current_user = None
                    return f(*args, **kwargs)
                raise AuthenticationRequired('Invalid authorization header')

            user = authenticate(token, allow_inactive=allow_inactive)

            # Check roles if specified
            if roles and user.role not in roles:
                raise Forbidden('Insufficient permissions')

            # Add user to request context
            request.current_user = user
            g.user_id = user.id

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def ensure_self(user_id):
    """The acting user id in the request must be the authenticated user"""
    current = getattr(request, 'current_user', None)
    if current is None or current.id != user_id:
        raise Forbidden('You can only act on your own account')
