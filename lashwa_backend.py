"""
Lashwa - Dating App Backend
Profiles, likes, matches and chat for the Lashwa mobile app.
"""
import os
import secrets
import uuid
import redis
from datetime import datetime
from functools import wraps

# Flask imports
from flask import Flask, request, jsonify, g
from flask_cors import CORS
from flask_bcrypt import Bcrypt
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_talisman import Talisman
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

# Database imports
from sqlalchemy.orm.exc import StaleDataError

# === LOGGING CONFIGURATION ===
from utils.logging_config import setup_logger

logger = setup_logger('lashwa')


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# === CONSTANTS ===
TESTING = _env_flag('TESTING')
PRODUCTION = _env_flag('PRODUCTION')

DEFAULT_ALLOWED_ORIGINS = [
    'https://lashwa.com',
    'https://admin.lashwa.com',
    'http://localhost:3000',
    'http://localhost:8081',
    'http://localhost:19006'
]
ALLOWED_ORIGINS = [origin.strip() for origin in
                   os.environ.get('ALLOWED_ORIGINS', ','.join(DEFAULT_ALLOWED_ORIGINS)).split(',')
                   if origin.strip()]

# === REDIS SETUP ===
redis_client = redis.from_url(os.environ.get('REDIS_URL', 'redis://localhost:6379'))

# === CREATE FLASK APP ===
app = Flask(__name__)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

# === FLASK CONFIGURATION ===
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', secrets.token_hex(32))
app.config['JWT_EXPIRATION_HOURS'] = int(os.environ.get('JWT_EXPIRATION_HOURS', 24))
app.config['TESTING'] = TESTING
app.config['RATELIMIT_ENABLED'] = _env_flag('RATELIMIT_ENABLED', True) and not TESTING
app.config['BCRYPT_LOG_ROUNDS'] = int(os.environ.get('BCRYPT_LOG_ROUNDS', 12))

# Database configuration
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get(
    'DATABASE_URL',
    'postgresql://localhost/lashwa'
).replace('postgres://', 'postgresql://', 1)
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
if app.config['SQLALCHEMY_DATABASE_URI'].startswith('postgresql'):
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_size': 20,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
        'max_overflow': 40,
        'pool_timeout': 30
    }

# === INITIALIZE EXTENSIONS ===
from models import db

db.init_app(app)
migrate = Migrate(app, db)
bcrypt = Bcrypt(app)
CORS(app, origins=ALLOWED_ORIGINS, supports_credentials=True)

# Security headers
Talisman(app,
    force_https=not (app.debug or TESTING),
    strict_transport_security={'max_age': 31536000, 'include_subdomains': True},
    content_security_policy=False,
    frame_options='SAMEORIGIN'
)

# Rate limiting
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=["5000 per day", "500 per hour"],
    storage_uri="memory://"
)

# === IMPORT UTILITIES ===
from auth.decorators import require_auth, ensure_self
from utils.cache_manager import CacheManager
from utils.errors import APIError, Conflict, DuplicateEmail, Forbidden, ServerError, ValidationError
from utils.security import contains_dangerous_pattern, validate_cors_origin
from utils.validators import require_id, validate_email, validate_user_id

cache = CacheManager(redis_client, logger)

# === WEBSOCKET SETUP ===
from services.websocket_service import WebSocketService

websocket_service = WebSocketService(app, logger, cors_allowed_origins=ALLOWED_ORIGINS)
socketio = websocket_service.socketio

# === INITIALIZE SERVICES ===
from services.auth_service import AuthService
from services.interaction_service import InteractionService
from services.messaging_service import MessagingService
from services.notification_service import NotificationService
from services.profile_service import ProfileService
from services.support_service import SupportService

notification_service = NotificationService(db, websocket_service, logger)
auth_service = AuthService(db, bcrypt, logger)
profile_service = ProfileService(db, bcrypt, cache, logger)
interaction_service = InteractionService(db, cache, notification_service, websocket_service, logger)
messaging_service = MessagingService(db, notification_service, websocket_service, logger)
support_service = SupportService(db, websocket_service, logger)

websocket_service.bind_services(db, messaging_service, support_service)


# === REQUEST HANDLERS ===
@app.before_request
def before_request():
    g.request_id = str(uuid.uuid4())
    g.request_start_time = datetime.utcnow()

    logger.info(f"request_started {request.method} {request.path}", extra={
        'request_id': g.request_id,
        'remote_addr': request.remote_addr
    })


@app.before_request
def check_cors():
    if request.method == 'OPTIONS':
        return

    if not validate_cors_origin(request, ALLOWED_ORIGINS):
        logger.warning(f"CORS validation failed for origin: {request.headers.get('Origin')}")
        raise Forbidden('CORS validation failed', code='CORS_REJECTED')


@app.before_request
def validate_inputs():
    """Check query and form values for script injection attempts"""
    for key, value in request.values.items():
        if contains_dangerous_pattern(value):
            logger.warning(f"Potential XSS attempt blocked: {key}={value[:50]}...")
            raise ValidationError('Invalid input detected')


@app.after_request
def after_request(response):
    if hasattr(g, 'request_start_time'):
        duration = (datetime.utcnow() - g.request_start_time).total_seconds()

        logger.info(f"request_completed {request.method} {request.path} {response.status_code}", extra={
            'request_id': getattr(g, 'request_id', 'unknown'),
            'duration_ms': round(duration * 1000, 2)
        })

    response.headers['X-Request-ID'] = getattr(g, 'request_id', 'unknown')
    return response


def handle_errors(error_message):
    """Roll back and log unexpected failures; API errors reach the error handlers untouched"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except (APIError, HTTPException, StaleDataError):
                db.session.rollback()
                raise
            except Exception as e:
                db.session.rollback()
                logger.error(f"{error_message}: {str(e)}", exc_info=True)
                raise ServerError(error_message)
        return decorated_function
    return decorator


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def acting_user_id(data, field):
    """Read the acting user id from the payload; it must be the caller's own"""
    user_id = require_id(data, field)
    ensure_self(user_id)
    return user_id


def query_user_id(field):
    user_id = validate_user_id(request.args.get(field))
    if user_id is None:
        raise ValidationError(f'{field} is required', details={'field': field})
    return user_id


# === API ENDPOINTS ===

# Health check
@app.route('/health', methods=['GET'])
def health_check():
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat()
    })


# Authentication endpoints
@app.route('/register', methods=['POST'])
@limiter.limit("10 per hour")
@handle_errors('Registration failed')
def register():
    """Register new user"""
    return jsonify(auth_service.register(json_body())), 201


@app.route('/login', methods=['POST'])
@limiter.limit("20 per minute")
@handle_errors('Login failed')
def login():
    """User login"""
    return jsonify(auth_service.login(json_body()))


@app.route('/check-email', methods=['POST'])
@limiter.limit("30 per minute")
@handle_errors('Email check failed')
def check_email():
    email = json_body().get('email')
    if not validate_email(email.strip() if isinstance(email, str) else email):
        raise ValidationError('Invalid email address', details={'field': 'email'})
    if auth_service.email_exists(email):
        raise DuplicateEmail()
    return jsonify({'available': True})


# Profile endpoints
@app.route('/users/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get user')
def get_user(user_id):
    return jsonify(profile_service.get_user(request.current_user, user_id))


@app.route('/users/<int:user_id>/profile', methods=['PUT'])
@require_auth()
@handle_errors('Failed to update profile')
def update_profile(user_id):
    ensure_self(user_id)
    return jsonify(profile_service.update_profile(user_id, json_body()))


@app.route('/users/<int:user_id>/photos', methods=['PUT'])
@require_auth()
@handle_errors('Failed to update photos')
def update_photos(user_id):
    ensure_self(user_id)
    return jsonify(profile_service.update_photos(user_id, json_body().get('imageUrls')))


@app.route('/users/<int:user_id>/visibility', methods=['PUT'])
@require_auth()
@handle_errors('Failed to update visibility settings')
def update_visibility(user_id):
    ensure_self(user_id)
    return jsonify(profile_service.update_visibility(user_id, json_body()))


@app.route('/users/<int:user_id>/account-status', methods=['GET'])
@require_auth(allow_inactive=True)
@handle_errors('Failed to get account status')
def get_account_status(user_id):
    ensure_self(user_id)
    return jsonify(profile_service.get_account_status(user_id))


@app.route('/user-status/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get user status')
def get_user_status(user_id):
    return jsonify(profile_service.get_user_status(user_id))


@app.route('/user-stats/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get user stats')
def get_user_stats(user_id):
    ensure_self(user_id)
    return jsonify(profile_service.get_user_stats(user_id))


@app.route('/admin/users/<int:user_id>/ban', methods=['PATCH'])
@require_auth(roles=['admin'])
@handle_errors('Error updating user visibility')
def admin_ban_user(user_id):
    data = json_body()
    return jsonify(profile_service.set_ban(request.current_user, user_id, data.get('ban')))


@app.route('/deactivate-account', methods=['POST'])
@require_auth()
@handle_errors('Failed to deactivate account')
def deactivate_account():
    data = json_body()
    user_id = acting_user_id(data, 'userId')
    return jsonify(profile_service.deactivate_account(user_id, data.get('password')))


@app.route('/reactivate-account', methods=['POST'])
@require_auth(allow_inactive=True)
@handle_errors('Failed to reactivate account')
def reactivate_account():
    user_id = acting_user_id(json_body(), 'userId')
    return jsonify(profile_service.reactivate_account(user_id))


@app.route('/delete-account', methods=['POST'])
@require_auth(allow_inactive=True)
@handle_errors('Failed to delete account')
def delete_account():
    data = json_body()
    user_id = acting_user_id(data, 'userId')
    return jsonify(profile_service.delete_account(user_id, data.get('password')))


# Like and match endpoints
@app.route('/like-profile', methods=['POST'])
@require_auth()
@handle_errors('Failed to like profile')
def like_profile():
    data = json_body()
    user_id = acting_user_id(data, 'userId')
    liked_user_id = require_id(data, 'likedUserId')
    return jsonify(interaction_service.like_profile(
        user_id, liked_user_id, data.get('image'), data.get('comment')
    ))


@app.route('/create-match', methods=['POST'])
@require_auth()
@handle_errors('Failed to create match')
def create_match():
    data = json_body()
    current_user_id = acting_user_id(data, 'currentUserId')
    selected_user_id = require_id(data, 'selectedUserId')
    return jsonify(interaction_service.create_match(current_user_id, selected_user_id))


@app.route('/get-matches/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get matches')
def get_matches(user_id):
    ensure_self(user_id)
    return jsonify(interaction_service.get_matches(user_id))


@app.route('/matches', methods=['GET'])
@require_auth()
@handle_errors('Failed to get potential matches')
def discover():
    user_id = query_user_id('userId')
    ensure_self(user_id)
    return jsonify(interaction_service.discover(user_id))


@app.route('/received-likes/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get received likes')
def received_likes(user_id):
    ensure_self(user_id)
    return jsonify(interaction_service.get_received_likes(user_id))


# Block and reject endpoints
@app.route('/block-user', methods=['POST'])
@require_auth()
@handle_errors('Failed to block user')
def block_user():
    data = json_body()
    user_id = acting_user_id(data, 'userId')
    return jsonify(interaction_service.block_user(user_id, require_id(data, 'blockedUserId')))


@app.route('/unblock-user', methods=['POST'])
@require_auth()
@handle_errors('Failed to unblock user')
def unblock_user():
    data = json_body()
    user_id = acting_user_id(data, 'userId')
    return jsonify(interaction_service.unblock_user(user_id, require_id(data, 'blockedUserId')))


@app.route('/blocked-users/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get blocked users')
def blocked_users(user_id):
    ensure_self(user_id)
    return jsonify(interaction_service.get_blocked_users(user_id))


@app.route('/check-blocked/<int:user_id>/<int:other_user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to check block status')
def check_blocked(user_id, other_user_id):
    ensure_self(user_id)
    return jsonify(interaction_service.check_blocked(user_id, other_user_id))


@app.route('/reject-profile', methods=['POST'])
@require_auth()
@handle_errors('Failed to reject profile')
def reject_profile():
    data = json_body()
    user_id = acting_user_id(data, 'userId')
    return jsonify(interaction_service.reject_profile(user_id, require_id(data, 'rejectedUserId')))


@app.route('/unreject-profile', methods=['POST'])
@require_auth()
@handle_errors('Failed to unreject profile')
def unreject_profile():
    data = json_body()
    user_id = acting_user_id(data, 'userId')
    return jsonify(interaction_service.unreject_profile(user_id, require_id(data, 'rejectedUserId')))


@app.route('/rejected-profiles/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get rejected profiles')
def rejected_profiles(user_id):
    ensure_self(user_id)
    return jsonify(interaction_service.get_rejected_profiles(user_id))


# Reports
@app.route('/report-user', methods=['POST'])
@limiter.limit("10 per hour")
@require_auth()
@handle_errors('Failed to submit report')
def report_user():
    data = json_body()
    reporter_id = acting_user_id(data, 'reporterId')
    reported_user_id = require_id(data, 'reportedUserId')
    if not data.get('reason'):
        raise ValidationError('reason is required', details={'field': 'reason'})
    return jsonify(interaction_service.report_user(
        reporter_id, reported_user_id, data.get('reason'), data.get('description')
    ))


@app.route('/admin/reports', methods=['GET'])
@require_auth(roles=['admin'])
@handle_errors('Failed to get reports')
def admin_reports():
    return jsonify(interaction_service.list_reports(
        status=request.args.get('status'),
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 20, type=int)
    ))


@app.route('/admin/reports/stats', methods=['GET'])
@require_auth(roles=['admin'])
@handle_errors('Failed to get report statistics')
def admin_report_stats():
    return jsonify(interaction_service.report_stats())


@app.route('/admin/reports/<int:report_id>', methods=['PATCH'])
@require_auth(roles=['admin'])
@handle_errors('Failed to update report')
def admin_review_report(report_id):
    return jsonify(interaction_service.review_report(request.current_user, report_id, json_body()))


# Messaging
@app.route('/messages', methods=['GET'])
@require_auth()
@handle_errors('Failed to fetch messages')
def fetch_messages():
    sender_id = query_user_id('senderId')
    receiver_id = query_user_id('receiverId')
    if request.current_user.id not in (sender_id, receiver_id):
        raise Forbidden('You can only read your own conversations')
    return jsonify(messaging_service.fetch_messages(sender_id, receiver_id, request.args.get('since')))


@app.route('/messages/send', methods=['POST'])
@require_auth()
@handle_errors('Failed to send message')
def send_message():
    data = json_body()
    sender_id = acting_user_id(data, 'senderId')
    receiver_id = require_id(data, 'receiverId')
    return jsonify(messaging_service.send_message(sender_id, receiver_id, data.get('message')))


# Support chat
def _support_owner(user_id):
    """Signed-in owner for a support request; None means a guest identified by email"""
    user = request.current_user
    if user_id is not None:
        if user is None:
            raise Forbidden('Sign in to use your support chat')
        ensure_self(user_id)
    return user


@app.route('/support/chat', methods=['POST'])
@require_auth(optional=True)
@handle_errors('Error starting chat')
def start_support_chat():
    data = json_body()
    user = _support_owner(validate_user_id(data.get('userId')))
    return jsonify(support_service.get_or_create_chat(user, data.get('identifier')))


@app.route('/support/chat', methods=['GET'])
@require_auth(optional=True)
@handle_errors('Error getting chat')
def get_support_chat():
    user = _support_owner(validate_user_id(request.args.get('userId')))
    return jsonify(support_service.get_chat(user, request.args.get('identifier')))


@app.route('/support/message', methods=['POST'])
@require_auth(optional=True)
@handle_errors('Error sending message')
def send_support_message():
    data = json_body()
    chat_id = require_id(data, 'chatId')
    return jsonify(support_service.post_user_message(
        chat_id, data.get('text'), user=request.current_user, identifier=data.get('identifier')
    ))


@app.route('/admin/support/chats', methods=['GET'])
@require_auth(roles=['admin'])
@handle_errors('Error fetching chats')
def admin_support_chats():
    return jsonify(support_service.list_chats(request.args.get('status')))


@app.route('/admin/support/chat/<int:chat_id>', methods=['GET'])
@require_auth(roles=['admin'])
@handle_errors('Error fetching chat')
def admin_support_chat(chat_id):
    return jsonify(support_service.get_chat_by_id(chat_id))


@app.route('/admin/support/message', methods=['POST'])
@require_auth(roles=['admin'])
@handle_errors('Error sending message')
def admin_support_message():
    data = json_body()
    return jsonify(support_service.post_admin_message(
        request.current_user, require_id(data, 'chatId'), data.get('text')
    ))


# Notifications
@app.route('/notifications/<int:user_id>', methods=['GET'])
@require_auth()
@handle_errors('Failed to get notifications')
def get_notifications(user_id):
    ensure_self(user_id)
    return jsonify(notification_service.get_notifications(user_id))


@app.route('/notifications/<int:user_id>/read/<int:notification_id>', methods=['POST'])
@require_auth()
@handle_errors('Failed to mark notification as read')
def mark_notification_read(user_id, notification_id):
    ensure_self(user_id)
    return jsonify(notification_service.mark_as_read(user_id, notification_id))


@app.route('/notifications/<int:user_id>/read-all', methods=['POST'])
@require_auth()
@handle_errors('Failed to mark notifications as read')
def mark_all_notifications_read(user_id):
    ensure_self(user_id)
    return jsonify(notification_service.mark_all_as_read(user_id))


@app.route('/notifications/<int:user_id>/<int:notification_id>', methods=['DELETE'])
@require_auth()
@handle_errors('Failed to delete notification')
def delete_notification(user_id, notification_id):
    ensure_self(user_id)
    return jsonify(notification_service.delete_notification(user_id, notification_id))


# === ERROR HANDLERS ===
@app.errorhandler(APIError)
def handle_api_error(error):
    payload = error.to_dict()
    payload['request_id'] = getattr(g, 'request_id', 'unknown')
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.path} failed: {error.message}")
    return jsonify(payload), error.status_code


@app.errorhandler(StaleDataError)
def handle_stale_data(error):
    db.session.rollback()
    logger.warning(f"Concurrent update rejected on {request.path}: {error}")
    return handle_api_error(Conflict())


@app.errorhandler(404)
def not_found(error):
    return jsonify({
        'error': 'Resource not found',
        'code': 'NOT_FOUND',
        'request_id': getattr(g, 'request_id', 'unknown')
    }), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({
        'error': 'Method not allowed',
        'code': 'METHOD_NOT_ALLOWED',
        'request_id': getattr(g, 'request_id', 'unknown')
    }), 405


@app.errorhandler(429)
def rate_limit_exceeded(error):
    return jsonify({
        'error': 'Rate limit exceeded',
        'code': 'RATE_LIMITED',
        'message': str(error.description),
        'request_id': getattr(g, 'request_id', 'unknown')
    }), 429


@app.errorhandler(500)
def internal_error(error):
    db.session.rollback()
    logger.error('internal_server_error', extra={
        'error': str(error),
        'request_id': getattr(g, 'request_id', 'unknown')
    }, exc_info=True)
    return jsonify({
        'error': 'Internal server error',
        'code': 'SERVER_ERROR',
        'request_id': getattr(g, 'request_id', 'unknown')
    }), 500


# === INITIALIZATION ===
def initialize_database():
    """Create tables and the bootstrap admin account"""
    from utils.db_init import create_admin_user

    with app.app_context():
        db.create_all()
        logger.info("Database tables created")

        create_admin_user(db, bcrypt, logger)
        logger.info("Database initialized successfully")


# === MAIN ENTRY POINT ===
if __name__ == '__main__':
    initialize_database()

    port = int(os.environ.get('PORT', 3000))
    debug = os.environ.get('FLASK_ENV') == 'development' and not PRODUCTION
    logger.info(f"Starting Lashwa API on port {port}")
    websocket_service.run(host='0.0.0.0', port=port, debug=debug)
