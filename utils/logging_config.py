"""
Logging configuration for the Lashwa API

Every line carries the id of the HTTP request it was written under (``-``
outside a request), so one request can be followed across services.
"""
import logging
import os

from flask import g, has_request_context

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s%(duration)s'


class RequestContextFilter(logging.Filter):
    """Fill request_id and duration on records that did not pass them as extra"""

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            request_id = None
            if has_request_context():
                request_id = getattr(g, 'request_id', None)
            record.request_id = request_id or '-'

        duration_ms = getattr(record, 'duration_ms', None)
        record.duration = f" ({duration_ms}ms)" if duration_ms is not None else ''
        return True


def setup_logger(name, level=None):
    """Setup logger with request-aware formatting"""
    if level is None:
        level = logging.DEBUG if os.environ.get('FLASK_ENV') == 'development' else logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(handler)

    return logger


def log_user_action(logger, user_id, action, details=None):
    log_msg = f"User {user_id} performed: {action}"
    if details:
        log_msg += f" | Details: {details}"
    logger.info(log_msg)


def log_audit(logger, user_id, action, details=None):
    """AUDIT lines for blocks, reports, bans and account changes"""
    audit_msg = f"AUDIT: User {user_id} | Action: {action}"
    if details:
        audit_msg += f" | Details: {details}"
    logger.info(audit_msg, extra={'audit': True})
