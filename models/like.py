from datetime import datetime

from models import db
from utils.helpers import format_datetime


class Like(db.Model):
    """One-directional interest; outgoing rows are a user's liked profiles,
    incoming rows are their received likes until a match or rejection consumes them"""
    __tablename__ = 'likes'

    id = db.Column(db.Integer, primary_key=True)
    from_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    to_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    image = db.Column(db.String(1000))
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    from_user = db.relationship('User', foreign_keys=[from_user_id])
    to_user = db.relationship('User', foreign_keys=[to_user_id])

    __table_args__ = (
        db.UniqueConstraint('from_user_id', 'to_user_id', name='unique_like_pair'),
    )

    def to_dict(self):
        data = {
            'id': self.id,
            'fromUserId': self.from_user_id,
            'image': self.image,
            'createdAt': format_datetime(self.created_at)
        }
        if self.comment:
            data['comment'] = self.comment
        return data
