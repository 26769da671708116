"""
Input validation utilities
"""
import re
from datetime import datetime

from utils.errors import ValidationError

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


def validate_email(email):
    """Validate email format"""
    if not email or not isinstance(email, str):
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def validate_password(password):
    """Validate password length"""
    if not password or not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"

    if len(password) > MAX_PASSWORD_LENGTH:
        return False, f"Password cannot exceed {MAX_PASSWORD_LENGTH} characters"

    return True, "Password is valid"


def validate_age(birth_date):
    """Validate age is between 18 and 100"""
    if not birth_date:
        return False

    today = datetime.now().date()
    age = today.year - birth_date.year - ((today.month, today.day) < (birth_date.month, birth_date.day))

    return 18 <= age <= 100


def validate_user_id(value):
    """Coerce a user id from a path, query or body value; None when malformed"""
    if isinstance(value, bool):
        return None
    try:
        user_id = int(value)
    except (TypeError, ValueError):
        return None
    return user_id if user_id > 0 else None


def require_id(data, field):
    """Read a mandatory user/resource id from a request payload"""
    value = validate_user_id((data or {}).get(field))
    if value is None:
        raise ValidationError(f'{field} is required', details={'field': field})
    return value
