from datetime import datetime, timedelta

from models import Like, Match, User
from models.user import LIFESTYLE_OPTIONS, VISIBILITY_FLAGS, normalize_gender
from services.base_service import BaseService
from utils.cache_manager import feed_cache_key
from utils.errors import Forbidden, InvalidCredentials, ValidationError
from utils.helpers import format_datetime, parse_birth_date
from utils.logging_config import log_audit
from utils.security import sanitize_input, validate_url
from utils.validators import validate_age

# JSON field name -> User column
PROFILE_FIELDS = {
    'firstName': 'first_name',
    'lastName': 'last_name',
    'gender': 'gender',
    'dateOfBirth': 'date_of_birth',
    'type': 'type',
    'datingPreferences': 'dating_preferences',
    'location': 'location',
    'hometown': 'hometown',
    'bio': 'bio',
    'height': 'height',
    'languages': 'languages',
    'children': 'children',
    'smoking': 'smoking',
    'drinking': 'drinking',
    'religion': 'religion',
    'occupation': 'occupation',
    'lookingFor': 'looking_for',
    'imageUrls': 'photos',
    'prompts': 'prompts',
}

# Set once at registration
READ_ONLY_FIELDS = ['firstName', 'dateOfBirth', 'age', 'type']

EDITABLE_FIELDS = [field for field in PROFILE_FIELDS if field not in READ_ONLY_FIELDS]

MAX_BIO_LENGTH = 500
MAX_TEXT_LENGTH = 100
MAX_PHOTOS = 9
MAX_PROMPTS = 10
ONLINE_WINDOW = timedelta(minutes=5)


def _clean_text(field, value, max_length=MAX_TEXT_LENGTH, allow_html=False):
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string', details={'field': field})
    value = sanitize_input(value, allow_html=allow_html)
    if len(value) > max_length:
        raise ValidationError(f'{field} cannot exceed {max_length} characters', details={'field': field})
    return value


def _clean_string_list(field, value):
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f'{field} must be a list of strings', details={'field': field})
    cleaned = []
    for item in value:
        item = sanitize_input(item)
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


def _clean_prompts(value):
    if not isinstance(value, list) or len(value) > MAX_PROMPTS:
        raise ValidationError(f'prompts must be a list of at most {MAX_PROMPTS} entries',
                              details={'field': 'prompts'})
    prompts = []
    for prompt in value:
        if not isinstance(prompt, dict):
            raise ValidationError('Each prompt needs a question and an answer', details={'field': 'prompts'})
        question = _clean_text('prompts.question', prompt.get('question'), 200)
        answer = _clean_text('prompts.answer', prompt.get('answer'), MAX_BIO_LENGTH)
        if not question or not answer:
            raise ValidationError('Each prompt needs a question and an answer', details={'field': 'prompts'})
        prompts.append({'question': question, 'answer': answer})
    return prompts


def clean_photo_urls(value):
    if not isinstance(value, list):
        raise ValidationError('imageUrls array is required', details={'field': 'imageUrls'})
    if len(value) > MAX_PHOTOS:
        raise ValidationError(f'At most {MAX_PHOTOS} photos are allowed', details={'field': 'imageUrls'})
    for url in value:
        if not validate_url(url):
            raise ValidationError('imageUrls must contain http(s) URLs', details={'field': 'imageUrls'})
    return list(value)


def clean_profile_fields(data, allowed):
    """Validate the allowed profile fields present in ``data``.

    Returns a ``{column: value}`` mapping. Unknown keys are ignored and empty
    lifestyle answers mean "not provided", mirroring what the mobile client sends.
    """
    cleaned = {}
    for field in allowed:
        if field not in data:
            continue
        value = data[field]
        column = PROFILE_FIELDS[field]

        if field in LIFESTYLE_OPTIONS:
            if value in ('', None):
                continue
            if value not in LIFESTYLE_OPTIONS[field]:
                raise ValidationError(f'Invalid value for {field}', details={
                    'field': field, 'allowed': LIFESTYLE_OPTIONS[field]
                })
            cleaned[column] = value
        elif field == 'gender':
            cleaned[column] = normalize_gender(_clean_text(field, value, 30))
        elif field == 'dateOfBirth':
            birth_date = parse_birth_date(value)
            if not birth_date:
                raise ValidationError('dateOfBirth must be DD/MM/YYYY or YYYY-MM-DD', details={'field': field})
            if not validate_age(birth_date):
                raise ValidationError('You must be at least 18 years old', details={'field': field})
            cleaned[column] = birth_date
        elif field == 'bio':
            cleaned[column] = _clean_text(field, value, MAX_BIO_LENGTH, allow_html=True)
        elif field in ('languages', 'datingPreferences'):
            cleaned[column] = _clean_string_list(field, value)
        elif field == 'prompts':
            cleaned[column] = _clean_prompts(value)
        elif field == 'imageUrls':
            cleaned[column] = clean_photo_urls(value)
        elif field in ('location', 'hometown'):
            cleaned[column] = _clean_text(field, value, 255)
        else:
            cleaned[column] = _clean_text(field, value)

    if 'looking_for' in cleaned and not cleaned['looking_for']:
        raise ValidationError('lookingFor is required', details={'field': 'lookingFor'})
    return cleaned


class ProfileService(BaseService):
    def __init__(self, db, bcrypt, cache, logger):
        super().__init__(db, logger)
        self.bcrypt = bcrypt
        self.cache = cache

    def get_user(self, viewer, user_id):
        """Full document for the owner, visibility-filtered profile for everyone else"""
        user = self.require_user(user_id)

        if viewer.id == user.id:
            data = user.to_dict(include_private=True)
            data.update(self.relationship_sets(user))
            return {'user': data}

        if not user.is_active or user.is_suspended:
            raise Forbidden('This account has been deactivated', code='ACCOUNT_DEACTIVATED')
        if user.is_blocking(viewer):
            raise Forbidden('This profile is not available', code='BLOCKED')

        return {'user': user.to_dict()}

    def relationship_sets(self, user):
        liked = [like.to_user_id for like in
                 Like.query.filter_by(from_user_id=user.id).order_by(Like.id).all()]
        received = [like.to_dict() for like in
                    Like.query.filter_by(to_user_id=user.id).order_by(Like.id).all()]
        return {
            'likedProfiles': liked,
            'receivedLikes': received,
            'matches': Match.matched_user_ids(user.id),
            'blockedUsers': user.blocked_user_ids(),
            'rejectedProfiles': user.rejected_profile_ids(),
        }

    def update_profile(self, user_id, data):
        """Merge editable fields; read-only fields are rejected explicitly"""
        if not isinstance(data, dict):
            raise ValidationError('Profile fields are required')

        read_only = [field for field in READ_ONLY_FIELDS if field in data]
        if read_only:
            raise ValidationError(f"Read-only fields cannot be changed: {', '.join(read_only)}",
                                  details={'fields': read_only})

        user = self.require_user(user_id)
        updates = clean_profile_fields(data, EDITABLE_FIELDS)
        for column, value in updates.items():
            setattr(user, column, value)
        self.db.session.commit()

        self.cache.delete(feed_cache_key(user_id))
        self.logger.info(f"User {user_id} updated profile fields: {sorted(updates)}")

        return {
            'message': 'Profile updated successfully',
            'user': user.to_dict(include_private=True)
        }

    def update_photos(self, user_id, image_urls):
        user = self.require_user(user_id)
        user.photos = clean_photo_urls(image_urls)
        self.db.session.commit()
        self.cache.delete(feed_cache_key(user_id))
        return {'message': 'Photos updated successfully', 'imageUrls': user.photos}

    def update_visibility(self, user_id, data):
        if not isinstance(data, dict):
            raise ValidationError('At least one visibility setting must be provided')

        unknown = [key for key in data if key not in VISIBILITY_FLAGS]
        if unknown:
            raise ValidationError(f"Unknown visibility settings: {', '.join(unknown)}",
                                  details={'fields': unknown})
        if not data:
            raise ValidationError('At least one visibility setting must be provided')
        for key, value in data.items():
            if not isinstance(value, bool):
                raise ValidationError(f'{key} must be true or false', details={'field': key})

        user = self.require_user(user_id)
        for key, value in data.items():
            setattr(user, VISIBILITY_FLAGS[key], value)
        self.db.session.commit()

        self.cache.delete(feed_cache_key(user_id))

        return {
            'message': 'Visibility settings updated successfully',
            'user': {key: getattr(user, column) for key, column in VISIBILITY_FLAGS.items()}
        }

    def get_account_status(self, user_id):
        user = self.require_user(user_id, include_deleted=True)
        return user.account_status()

    def get_user_status(self, user_id):
        user = self.require_user(user_id)
        recently_active = bool(user.last_active and
                               user.last_active > datetime.utcnow() - ONLINE_WINDOW)
        return {
            'isOnline': bool(user.is_online and recently_active),
            'lastActive': format_datetime(user.last_active)
        }

    def get_user_stats(self, user_id):
        user = self.require_user(user_id)
        return {'stats': {
            'likesReceived': Like.query.filter_by(to_user_id=user.id).count(),
            'matchesCount': len(Match.matched_user_ids(user.id))
        }}

    def set_ban(self, admin, user_id, ban):
        """Suspend (visibility hidden) or restore an account"""
        if not isinstance(ban, bool):
            raise ValidationError('ban must be true or false', details={'field': 'ban'})
        if admin.id == user_id:
            raise ValidationError('You cannot ban yourself')

        user = self.require_user(user_id)
        user.visibility = 'hidden' if ban else 'public'
        if ban:
            user.is_online = False
        self.db.session.commit()

        self.cache.delete(feed_cache_key(user_id))
        log_audit(self.logger, admin.id, 'ban_user' if ban else 'unban_user', {'userId': user_id})
        return {
            'message': 'User banned' if ban else 'User unbanned',
            'user': user.to_dict(include_private=True)
        }

    def _verify_password(self, user, password):
        if not password or not isinstance(password, str):
            raise ValidationError('Password is required', details={'field': 'password'})
        if not self.bcrypt.check_password_hash(user.password_hash, password):
            raise InvalidCredentials('Invalid password')

    def deactivate_account(self, user_id, password):
        user = self.require_user(user_id)
        self._verify_password(user, password)

        user.is_active = False
        user.is_online = False
        user.deactivated_at = datetime.utcnow()
        self.db.session.commit()

        log_audit(self.logger, user_id, 'deactivate_account')
        return {
            'message': 'Account deactivated successfully',
            'deactivatedAt': format_datetime(user.deactivated_at)
        }

    def reactivate_account(self, user_id):
        user = self.require_user(user_id)
        user.is_active = True
        user.deactivated_at = None
        self.db.session.commit()

        log_audit(self.logger, user_id, 'reactivate_account')
        return {'message': 'Account reactivated successfully'}

    def delete_account(self, user_id, password):
        """Soft delete: the row and its relationships stay, the account can no longer sign in"""
        user = self.require_user(user_id)
        self._verify_password(user, password)

        now = datetime.utcnow()
        user.is_deleted = True
        user.deleted_at = now
        user.is_active = False
        user.is_online = False
        if not user.deactivated_at:
            user.deactivated_at = now
        self.db.session.commit()

        self.cache.delete(feed_cache_key(user_id))
        log_audit(self.logger, user_id, 'delete_account')
        return {
            'message': 'Account deleted successfully',
            'deletedAt': format_datetime(user.deleted_at)
        }
