from models import Notification
from models.notification import MAX_NOTIFICATIONS_PER_USER
from services.base_service import BaseService
from utils.errors import NotFound


class NotificationService(BaseService):
    def __init__(self, db, push, logger):
        super().__init__(db, logger)
        self.push = push

    def create_notification(self, user_id, type, title, message, data=None):
        """Store a notification, keep the newest 50 and push it to the user's room"""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data or {}
        )
        self.db.session.add(notification)
        self.db.session.flush()

        stale = (Notification.query
                 .filter_by(user_id=user_id)
                 .order_by(Notification.id.desc())
                 .offset(MAX_NOTIFICATIONS_PER_USER)
                 .all())
        for old in stale:
            self.db.session.delete(old)

        self.db.session.commit()

        if self.push:
            self.push.emit_to_user(user_id, 'notification', notification.to_dict())
        return notification

    def get_notifications(self, user_id):
        self.require_user(user_id)
        notifications = (Notification.query
                         .filter_by(user_id=user_id)
                         .order_by(Notification.id.desc())
                         .all())
        return {
            'notifications': [n.to_dict() for n in notifications],
            'unreadCount': sum(1 for n in notifications if not n.is_read)
        }

    def _require_notification(self, user_id, notification_id):
        notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if not notification:
            raise NotFound('Notification not found')
        return notification

    def mark_as_read(self, user_id, notification_id):
        notification = self._require_notification(user_id, notification_id)
        notification.is_read = True
        self.db.session.commit()
        return {'message': 'Notification marked as read'}

    def mark_all_as_read(self, user_id):
        updated = (Notification.query
                   .filter_by(user_id=user_id, is_read=False)
                   .update({'is_read': True}))
        self.db.session.commit()
        return {'message': 'All notifications marked as read', 'updated': updated}

    def delete_notification(self, user_id, notification_id):
        notification = self._require_notification(user_id, notification_id)
        self.db.session.delete(notification)
        self.db.session.commit()
        return {'message': 'Notification deleted'}
