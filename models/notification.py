from datetime import datetime

from models import db
from utils.helpers import format_datetime

MAX_NOTIFICATIONS_PER_USER = 50


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)  # like, match, message, system
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(500), nullable=False)
    data = db.Column(db.JSON, default=dict)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': self.data or {},
            'read': self.is_read,
            'timestamp': format_datetime(self.created_at)
        }
