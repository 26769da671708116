from datetime import datetime

from models import db
from utils.helpers import format_datetime


class SupportChat(db.Model):
    """Support conversation owned by a user or, before login, by an email identifier"""
    __tablename__ = 'support_chats'

    id = db.Column(db.Integer, primary_key=True)
    owner_key = db.Column(db.String(100), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    status = db.Column(db.String(20), default='open', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', foreign_keys=[user_id])
    messages = db.relationship('SupportMessage', backref='chat',
                               order_by='SupportMessage.id',
                               cascade='all, delete-orphan')

    @property
    def is_guest(self):
        return self.user_id is None

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'email': self.user.email if self.user else None,
            'adminId': self.admin_id,
            'status': self.status,
            'messages': [m.to_dict() for m in self.messages],
            'createdAt': format_datetime(self.created_at),
            'updatedAt': format_datetime(self.updated_at)
        }


class SupportMessage(db.Model):
    __tablename__ = 'support_messages'

    id = db.Column(db.Integer, primary_key=True)
    chat_id = db.Column(db.Integer, db.ForeignKey('support_chats.id'), nullable=False, index=True)
    sender = db.Column(db.Enum('user', 'admin', name='support_sender'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'sender': self.sender,
            'text': self.text,
            'timestamp': format_datetime(self.timestamp)
        }
