from sqlalchemy import and_, or_

from models import Match, Message
from services.base_service import BaseService
from utils.errors import Forbidden, ValidationError
from utils.helpers import conversation_room, parse_timestamp, truncate_text, user_room
from utils.security import sanitize_input

MAX_MESSAGE_LENGTH = 2000


class MessagingService(BaseService):
    def __init__(self, db, notifications, push, logger):
        super().__init__(db, logger)
        self.notifications = notifications
        self.push = push

    def fetch_messages(self, sender_id, receiver_id, since=None):
        """Conversation between two users, oldest first"""
        self.require_users(sender_id, receiver_id)

        query = Message.query.filter(or_(
            and_(Message.sender_id == sender_id, Message.receiver_id == receiver_id),
            and_(Message.sender_id == receiver_id, Message.receiver_id == sender_id)
        ))

        if since:
            since_dt = parse_timestamp(since)
            if not since_dt:
                raise ValidationError('since must be an ISO 8601 timestamp', details={'field': 'since'})
            query = query.filter(Message.timestamp > since_dt)

        messages = query.order_by(Message.timestamp.asc(), Message.id.asc()).all()
        return {'messages': [m.to_dict() for m in messages]}

    def send_message(self, sender_id, receiver_id, text):
        if sender_id == receiver_id:
            raise ValidationError('Cannot message yourself')
        if not isinstance(text, str):
            raise ValidationError('message is required', details={'field': 'message'})
        text = sanitize_input(text)
        if not text:
            raise ValidationError('message is required', details={'field': 'message'})
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f'message cannot exceed {MAX_MESSAGE_LENGTH} characters',
                                  details={'field': 'message'})

        sender, receiver = self.require_users(sender_id, receiver_id)
        if sender.is_blocking(receiver) or receiver.is_blocking(sender):
            raise Forbidden('Cannot message this user', code='BLOCKED')
        if not Match.for_pair(sender_id, receiver_id):
            raise Forbidden('You can only message your matches', code='NOT_MATCHED')

        message = Message(sender_id=sender_id, receiver_id=receiver_id, message=text)
        self.db.session.add(message)
        sender.touch()
        self.db.session.commit()

        payload = message.to_dict()
        self.logger.info(f"Message {message.id} sent from user {sender_id} to user {receiver_id}")

        if self.push:
            # A socket in several of these rooms receives one copy
            rooms = [conversation_room(sender_id, receiver_id), user_room(sender_id), user_room(receiver_id)]
            self.push.emit_to_room(rooms, 'receiveMessage', payload)

        self.notifications.create_notification(
            receiver_id,
            'message',
            f"New message from {sender.first_name}",
            truncate_text(text),
            {'senderId': sender_id, 'senderName': sender.first_name, 'messageId': message.id}
        )

        return {'message': payload}
