"""
General helper utilities for the Lashwa API
"""
from datetime import datetime
import hashlib


def format_datetime(dt):
    """ISO format for JSON responses"""
    if not dt:
        return None
    return dt.isoformat()


def parse_birth_date(value):
    """Parse a date of birth given as DD/MM/YYYY or ISO (YYYY-MM-DD[...])"""
    if not value or not isinstance(value, str):
        return None

    value = value.strip()
    try:
        if '/' in value:
            return datetime.strptime(value, '%d/%m/%Y').date()
        return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
    except ValueError:
        return None


def parse_timestamp(value):
    """Parse an ISO timestamp query value into a naive UTC datetime"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def calculate_age(birth_date):
    """Calculate age from birth date"""
    if not birth_date:
        return None

    today = datetime.now().date()
    return today.year - birth_date.year - ((today.month, today.day) < (birth_date.month, birth_date.day))


def hash_string(text):
    """Create hash of string"""
    return hashlib.sha256(text.encode()).hexdigest()


def ordered_pair(user_a_id, user_b_id):
    """Unordered pair of user ids in canonical (low, high) order"""
    return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


def conversation_room(user_a_id, user_b_id):
    """Socket room shared by the two participants of a conversation"""
    low, high = ordered_pair(user_a_id, user_b_id)
    return f"chat_{low}_{high}"


def user_room(user_id):
    return f"user_{user_id}"


def truncate_text(text, max_length=50):
    """Truncate text to specified length"""
    if not text or len(text) <= max_length:
        return text
    return text[:max_length] + "..."
