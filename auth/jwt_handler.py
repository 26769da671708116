import jwt
from datetime import datetime, timedelta
from flask import current_app

JWT_ALGORITHM = 'HS256'


def generate_token(user_id, expires_in=None):
    """Generate JWT token for user; expiry is enforced server side on every request"""
    if expires_in is None:
        expires_in = current_app.config.get('JWT_EXPIRATION_HOURS', 24)
    now = datetime.utcnow()
    payload = {
        'user_id': user_id,
        'exp': now + timedelta(hours=expires_in),
        'iat': now
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm=JWT_ALGORITHM)


def verify_token(token):
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if not isinstance(payload.get('user_id'), int):
        return None
    return payload

