from datetime import datetime

from sqlalchemy.exc import IntegrityError

from auth.jwt_handler import generate_token
from models import User
from services.base_service import BaseService
from services.profile_service import PROFILE_FIELDS, clean_profile_fields
from utils.errors import DuplicateEmail, Forbidden, InvalidCredentials, ValidationError
from utils.logging_config import log_user_action
from utils.validators import validate_email, validate_password


def normalize_email(email):
    if not isinstance(email, str):
        return ''
    return email.strip().lower()


class AuthService(BaseService):
    def __init__(self, db, bcrypt, logger):
        super().__init__(db, logger)
        self.bcrypt = bcrypt

    def email_exists(self, email):
        return User.query.filter_by(email=normalize_email(email)).first() is not None

    def register(self, data):
        """Register new user"""
        email = normalize_email(data.get('email'))
        password = data.get('password', '')

        if not email or not validate_email(email):
            raise ValidationError('Invalid email address', details={'field': 'email'})

        is_valid, message = validate_password(password)
        if not is_valid:
            raise ValidationError(message, details={'field': 'password'})

        profile = clean_profile_fields(data, list(PROFILE_FIELDS))
        if not profile.get('first_name'):
            raise ValidationError('firstName is required', details={'field': 'firstName'})
        if not profile.get('looking_for'):
            raise ValidationError('lookingFor is required', details={'field': 'lookingFor'})

        if self.email_exists(email):
            raise DuplicateEmail()

        now = datetime.utcnow()
        user = User(
            email=email,
            password_hash=self.bcrypt.generate_password_hash(password).decode('utf-8'),
            created_at=now,
            last_active=now,
            **profile
        )
        self.db.session.add(user)
        try:
            self.db.session.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration for the same email
            self.db.session.rollback()
            raise DuplicateEmail()

        log_user_action(self.logger, user.id, 'register')

        return {
            'userId': user.id,
            'token': generate_token(user.id)
        }

    def login(self, data):
        """User login"""
        email = normalize_email(data.get('email'))
        password = data.get('password')

        if not email or not password or not isinstance(password, str):
            raise ValidationError('Email and password required')

        user = User.query.filter_by(email=email).first()

        if not user or user.is_deleted or not self.bcrypt.check_password_hash(user.password_hash, password):
            raise InvalidCredentials()

        if user.is_suspended:
            raise Forbidden('Your account has been suspended. Please contact support for assistance.',
                            code='ACCOUNT_SUSPENDED')

        if not user.is_active:
            # Signing in again reactivates a deactivated account
            user.is_active = True
            user.deactivated_at = None
            self.logger.info(f"Account reactivated on login for user {user.id}")

        now = datetime.utcnow()
        user.last_login = now
        user.last_active = now
        self.db.session.commit()

        log_user_action(self.logger, user.id, 'login')

        return {
            'token': generate_token(user.id),
            'user': {
                'id': user.id,
                'firstName': user.first_name,
                'lastName': user.last_name,
                'email': user.email
            }
        }
