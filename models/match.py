from datetime import datetime

from models import db
from utils.helpers import format_datetime, ordered_pair


class Match(db.Model):
    """Mutual match, one row per unordered pair of users"""
    __tablename__ = 'matches'

    id = db.Column(db.Integer, primary_key=True)
    user_low_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    user_high_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user_low = db.relationship('User', foreign_keys=[user_low_id])
    user_high = db.relationship('User', foreign_keys=[user_high_id])

    __table_args__ = (
        db.UniqueConstraint('user_low_id', 'user_high_id', name='unique_match_pair'),
        db.CheckConstraint('user_low_id < user_high_id', name='ordered_match_pair'),
    )

    @classmethod
    def for_pair(cls, user_a_id, user_b_id):
        low, high = ordered_pair(user_a_id, user_b_id)
        return cls.query.filter_by(user_low_id=low, user_high_id=high).first()

    @classmethod
    def involving(cls, user_id):
        return cls.query.filter(
            db.or_(cls.user_low_id == user_id, cls.user_high_id == user_id)
        )

    @classmethod
    def matched_user_ids(cls, user_id):
        return [m.other_user_id(user_id) for m in cls.involving(user_id).order_by(cls.created_at).all()]

    def other_user_id(self, user_id):
        return self.user_high_id if self.user_low_id == user_id else self.user_low_id

    def to_dict(self):
        return {
            'id': self.id,
            'userIds': [self.user_low_id, self.user_high_id],
            'createdAt': format_datetime(self.created_at)
        }
