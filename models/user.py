from datetime import datetime

from models import db
from utils.helpers import calculate_age, format_datetime

CHILDREN_OPTIONS = ['Yes, I have children', "No, I don't have children", 'Prefer not to say']
SMOKING_OPTIONS = ['Yes, I smoke', "No, I don't smoke", 'Occasionally', 'Prefer not to say']
DRINKING_OPTIONS = ['Yes, I drink', "No, I don't drink", 'Occasionally', 'Prefer not to say']

LIFESTYLE_OPTIONS = {
    'children': CHILDREN_OPTIONS,
    'smoking': SMOKING_OPTIONS,
    'drinking': DRINKING_OPTIONS,
}

VISIBILITY_FLAGS = {
    'genderVisible': 'gender_visible',
    'typeVisible': 'type_visible',
    'lookingForVisible': 'looking_for_visible',
}

# Junction tables for one-directional relationship sets
user_blocks = db.Table('user_blocks',
    db.Column('blocker_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('blocked_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('created_at', db.DateTime, default=datetime.utcnow)
)

user_rejections = db.Table('user_rejections',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('rejected_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('created_at', db.DateTime, default=datetime.utcnow)
)


def normalize_gender(gender):
    """Map client gender spellings onto the stored values"""
    if not gender or not isinstance(gender, str):
        return gender
    normalized = gender.strip().lower()
    if normalized in ('men', 'male'):
        return 'Male'
    if normalized in ('women', 'female'):
        return 'Female'
    return gender.strip()


def opposite_gender(gender):
    normalized = normalize_gender(gender)
    if normalized == 'Male':
        return 'Female'
    if normalized == 'Female':
        return 'Male'
    return None


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default='user', nullable=False)

    # Profile
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100))
    gender = db.Column(db.String(30))
    date_of_birth = db.Column(db.Date)
    type = db.Column(db.String(50))
    dating_preferences = db.Column(db.JSON, default=list)
    location = db.Column(db.String(255))
    hometown = db.Column(db.String(255))
    bio = db.Column(db.Text)
    height = db.Column(db.String(20))
    languages = db.Column(db.JSON, default=list)
    children = db.Column(db.String(50))
    smoking = db.Column(db.String(50))
    drinking = db.Column(db.String(50))
    religion = db.Column(db.String(100))
    occupation = db.Column(db.String(100))
    looking_for = db.Column(db.String(100), nullable=False)
    photos = db.Column(db.JSON, default=list)
    prompts = db.Column(db.JSON, default=list)

    # Visibility flags
    gender_visible = db.Column(db.Boolean, default=True, nullable=False)
    type_visible = db.Column(db.Boolean, default=True, nullable=False)
    looking_for_visible = db.Column(db.Boolean, default=True, nullable=False)

    # Account state
    visibility = db.Column(db.String(20), default='public', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    deactivated_at = db.Column(db.DateTime)
    deleted_at = db.Column(db.DateTime)
    is_online = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)
    last_active = db.Column(db.DateTime)

    # Optimistic concurrency counter, checked on every UPDATE of the row
    version = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {'version_id_col': version}

    blocked_users = db.relationship('User',
        secondary=user_blocks,
        primaryjoin=(user_blocks.c.blocker_id == id),
        secondaryjoin=(user_blocks.c.blocked_id == id),
        backref=db.backref('blocked_by', lazy='dynamic'),
        lazy='dynamic'
    )

    rejected_profiles = db.relationship('User',
        secondary=user_rejections,
        primaryjoin=(user_rejections.c.user_id == id),
        secondaryjoin=(user_rejections.c.rejected_id == id),
        lazy='dynamic'
    )

    @property
    def age(self):
        return calculate_age(self.date_of_birth)

    @property
    def is_suspended(self):
        return self.visibility == 'hidden'

    # Block methods
    def block_user(self, user):
        """Block another user"""
        if not self.is_blocking(user):
            self.blocked_users.append(user)

    def unblock_user(self, user):
        """Unblock a user"""
        if self.is_blocking(user):
            self.blocked_users.remove(user)

    def is_blocking(self, user):
        """Check if this user blocked another user"""
        return self.blocked_users.filter(user_blocks.c.blocked_id == user.id).count() > 0

    # Rejection methods
    def reject_profile(self, user):
        if not self.has_rejected(user):
            self.rejected_profiles.append(user)

    def unreject_profile(self, user):
        if self.has_rejected(user):
            self.rejected_profiles.remove(user)

    def has_rejected(self, user):
        return self.rejected_profiles.filter(user_rejections.c.rejected_id == user.id).count() > 0

    def blocked_user_ids(self):
        return [row.blocked_id for row in db.session.query(user_blocks.c.blocked_id)
                .filter(user_blocks.c.blocker_id == self.id)]

    def blocker_ids(self):
        """Ids of users who blocked this user"""
        return [row.blocker_id for row in db.session.query(user_blocks.c.blocker_id)
                .filter(user_blocks.c.blocked_id == self.id)]

    def rejected_profile_ids(self):
        return [row.rejected_id for row in db.session.query(user_rejections.c.rejected_id)
                .filter(user_rejections.c.user_id == self.id)]

    def touch(self):
        """Record activity"""
        self.last_active = datetime.utcnow()

    def __repr__(self):
        return f'<User {self.email}>'

    def to_summary_dict(self):
        """Compact card used in lists (likes, matches, blocked users)"""
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'imageUrls': self.photos or [],
            'age': self.age,
            'location': self.location,
            'hometown': self.hometown,
            'occupation': self.occupation,
            'prompts': self.prompts or [],
        }

    def to_dict(self, include_private=False):
        """Profile document; non-owners only see fields whose visibility flag is set"""
        data = {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'gender': self.gender,
            'dateOfBirth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'age': self.age,
            'type': self.type,
            'datingPreferences': self.dating_preferences or [],
            'location': self.location,
            'hometown': self.hometown,
            'bio': self.bio,
            'height': self.height,
            'languages': self.languages or [],
            'children': self.children,
            'smoking': self.smoking,
            'drinking': self.drinking,
            'religion': self.religion,
            'occupation': self.occupation,
            'lookingFor': self.looking_for,
            'imageUrls': self.photos or [],
            'prompts': self.prompts or [],
            'createdAt': format_datetime(self.created_at),
            'lastActive': format_datetime(self.last_active),
        }

        if include_private:
            data.update({
                'email': self.email,
                'role': self.role,
                'genderVisible': self.gender_visible,
                'typeVisible': self.type_visible,
                'lookingForVisible': self.looking_for_visible,
                'visibility': self.visibility,
                'isActive': self.is_active,
                'isDeleted': self.is_deleted,
                'lastLogin': format_datetime(self.last_login),
            })
            return data

        if not self.gender_visible:
            data.pop('gender')
        if not self.type_visible:
            data.pop('type')
        if not self.looking_for_visible:
            data.pop('lookingFor')
        # Partner preferences are never shown to other users
        data.pop('datingPreferences')
        return data

    def account_status(self):
        return {
            'isActive': self.is_active,
            'isDeleted': self.is_deleted,
            'deactivatedAt': format_datetime(self.deactivated_at),
            'deletedAt': format_datetime(self.deleted_at),
        }
