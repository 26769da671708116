# models/__init__.py
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from models.user import User, user_blocks, user_rejections  # noqa: E402
from models.like import Like  # noqa: E402
from models.match import Match  # noqa: E402
from models.message import Message  # noqa: E402
from models.report import Report, ReportReason, ReportStatus  # noqa: E402
from models.support_chat import SupportChat, SupportMessage  # noqa: E402
from models.notification import Notification  # noqa: E402

__all__ = [
    'db', 'User', 'user_blocks', 'user_rejections',
    'Like', 'Match', 'Message',
    'Report', 'ReportReason', 'ReportStatus',
    'SupportChat', 'SupportMessage', 'Notification'
]
