"""
API error taxonomy

Services raise these; the application error handler renders them as
``{"error": ..., "code": ..., "request_id": ...}`` with the matching status.
"""


class APIError(Exception):
    status_code = 500
    code = 'SERVER_ERROR'
    default_message = 'Internal server error'

    def __init__(self, message=None, code=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details = details

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(APIError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid request'


class InvalidCredentials(APIError):
    status_code = 401
    code = 'INVALID_CREDENTIALS'
    default_message = 'Invalid email or password'


class AuthenticationRequired(APIError):
    status_code = 401
    code = 'AUTH_REQUIRED'
    default_message = 'Authentication required'


class Forbidden(APIError):
    status_code = 403
    code = 'FORBIDDEN'
    default_message = 'Forbidden'


class NotFound(APIError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class DuplicateEmail(APIError):
    status_code = 409
    code = 'DUPLICATE_EMAIL'
    default_message = 'Email already registered'


class Conflict(APIError):
    status_code = 409
    code = 'CONFLICT'
    default_message = 'The resource was modified concurrently, please retry'


class ServerError(APIError):
    pass
