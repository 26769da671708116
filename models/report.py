"""User report (moderation audit record) model"""
from datetime import datetime
from enum import Enum

from models import db
from utils.helpers import format_datetime


class ReportReason(Enum):
    INAPPROPRIATE_CONTENT = 'inappropriate_content'
    HARASSMENT = 'harassment'
    FAKE_PROFILE = 'fake_profile'
    SPAM = 'spam'
    UNDERAGE = 'underage'
    VIOLENCE = 'violence'
    OTHER = 'other'


class ReportStatus(Enum):
    PENDING = 'pending'
    REVIEWED = 'reviewed'
    RESOLVED = 'resolved'
    DISMISSED = 'dismissed'


OPEN_REPORT_STATUSES = (ReportStatus.PENDING, ReportStatus.REVIEWED)


class Report(db.Model):
    __tablename__ = 'reports'

    id = db.Column(db.Integer, primary_key=True)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reported_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reason = db.Column(db.Enum(ReportReason), nullable=False)
    description = db.Column(db.String(1000), default='')
    status = db.Column(db.Enum(ReportStatus), default=ReportStatus.PENDING, nullable=False)
    admin_notes = db.Column(db.String(1000))
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    reviewed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reporter = db.relationship('User', foreign_keys=[reporter_id])
    reported_user = db.relationship('User', foreign_keys=[reported_user_id])

    __table_args__ = (
        db.Index('ix_reports_pair', 'reporter_id', 'reported_user_id'),
        db.Index('ix_reports_status_created', 'status', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'reporterId': self.reporter_id,
            'reportedUserId': self.reported_user_id,
            'reason': self.reason.value if self.reason else None,
            'description': self.description,
            'status': self.status.value if self.status else None,
            'adminNotes': self.admin_notes,
            'reviewedBy': self.reviewed_by,
            'reviewedAt': format_datetime(self.reviewed_at),
            'createdAt': format_datetime(self.created_at),
            'updatedAt': format_datetime(self.updated_at)
        }
