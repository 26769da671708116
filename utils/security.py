"""
Security utilities for input sanitization and validation
"""
import html
import re
from urllib.parse import urlparse

import bleach

# HTML tags allowed in user content
ALLOWED_HTML_TAGS = ['b', 'i', 'u', 'em', 'strong', 'p', 'br']

# Dangerous patterns screened in query strings and form values
DANGEROUS_PATTERNS = [
    r'<script', r'javascript:', r'onerror=', r'onclick=',
    r'onload=', r'<iframe', r'<object', r'<embed',
    r'vbscript:', r'data:text/html'
]


def sanitize_input(text, allow_html=False):
    """Sanitize user input to prevent XSS"""
    if not text or not isinstance(text, str):
        return text

    if allow_html:
        text = bleach.clean(text, tags=ALLOWED_HTML_TAGS, strip=True)
    else:
        text = html.escape(text, quote=False)

    return text.replace('\x00', '').strip()


def contains_dangerous_pattern(value):
    """Check a raw request value against the script patterns"""
    if not value or not isinstance(value, str):
        return False
    return any(re.search(pattern, value, re.IGNORECASE) for pattern in DANGEROUS_PATTERNS)


def validate_cors_origin(request, allowed_origins):
    """Validate CORS origin"""
    origin = request.headers.get('Origin')
    if not origin:
        # Native mobile clients send no Origin header
        return True

    origin_lower = origin.lower()
    for allowed in allowed_origins:
        if origin_lower == allowed.lower():
            return True

    return False


def validate_url(url):
    """Validate URL format and scheme"""
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urlparse(url)
        return parsed.scheme in ['http', 'https'] and bool(parsed.netloc)
    except ValueError:
        return False
