"""
Support chat between users (or not-yet-registered guests) and admins
"""
from datetime import datetime

from models import SupportChat, SupportMessage
from services.base_service import BaseService
from utils.errors import Forbidden, NotFound, ValidationError
from utils.helpers import hash_string
from utils.logging_config import log_user_action
from utils.security import sanitize_input
from utils.validators import validate_email

MAX_SUPPORT_MESSAGE_LENGTH = 2000


def support_room(chat_id):
    return f"support_{chat_id}"


def guest_owner_key(identifier):
    """Guests are keyed by a hash of their email so the raw address is not used as a key"""
    return f"guest_{hash_string(identifier.strip().lower())[:16]}"


def user_owner_key(user_id):
    return f"user_{user_id}"


class SupportService(BaseService):
    def __init__(self, db, push, logger):
        super().__init__(db, logger)
        self.push = push

    def _owner_key(self, user, identifier):
        if user is not None:
            return user_owner_key(user.id)
        if not identifier or not isinstance(identifier, str) or not validate_email(identifier.strip()):
            raise ValidationError('A valid email identifier is required for guest support',
                                  details={'field': 'identifier'})
        return guest_owner_key(identifier)

    def _open_chat(self, owner_key):
        return (SupportChat.query
                .filter_by(owner_key=owner_key, status='open')
                .order_by(SupportChat.id.desc())
                .first())

    def get_or_create_chat(self, user=None, identifier=None):
        owner_key = self._owner_key(user, identifier)
        chat = self._open_chat(owner_key)
        if chat:
            return {'chat': chat.to_dict(), 'created': False}

        chat = SupportChat(owner_key=owner_key, user_id=user.id if user else None)
        self.db.session.add(chat)
        self.db.session.commit()

        self.logger.info(f"Support chat {chat.id} opened for {owner_key}")
        return {'chat': chat.to_dict(), 'created': True}

    def get_chat(self, user=None, identifier=None):
        chat = self._open_chat(self._owner_key(user, identifier))
        if not chat:
            raise NotFound('No open support chat')
        return {'chat': chat.to_dict()}

    def _require_chat(self, chat_id):
        chat = self.db.session.get(SupportChat, chat_id) if chat_id else None
        if not chat:
            raise NotFound('Support chat not found')
        return chat

    def _clean_text(self, text):
        if not isinstance(text, str) or not sanitize_input(text):
            raise ValidationError('text is required', details={'field': 'text'})
        text = sanitize_input(text)
        if len(text) > MAX_SUPPORT_MESSAGE_LENGTH:
            raise ValidationError(f'text cannot exceed {MAX_SUPPORT_MESSAGE_LENGTH} characters',
                                  details={'field': 'text'})
        return text

    def _append(self, chat, sender, text):
        message = SupportMessage(chat_id=chat.id, sender=sender, text=text)
        self.db.session.add(message)
        chat.updated_at = datetime.utcnow()
        self.db.session.commit()

        if self.push:
            self.push.emit_to_room(support_room(chat.id), 'support_message', {
                'chatId': chat.id,
                'message': message.to_dict()
            })
        return chat.to_dict()

    def can_access(self, chat, user=None, identifier=None):
        """Owner check for a chat: the signed-in owner, the guest's identifier, or an admin"""
        if user is not None and user.role == 'admin':
            return True
        if chat.is_guest:
            return bool(identifier) and isinstance(identifier, str) and \
                chat.owner_key == guest_owner_key(identifier)
        return user is not None and chat.user_id == user.id

    def post_user_message(self, chat_id, text, user=None, identifier=None):
        chat = self._require_chat(chat_id)
        if user is not None and user.role == 'admin' and chat.user_id != user.id:
            raise Forbidden('Admins reply through the admin support endpoint')
        if not self.can_access(chat, user, identifier):
            raise Forbidden('You cannot post to this support chat')
        if chat.status != 'open':
            raise ValidationError('This support chat is closed')

        chat_data = self._append(chat, 'user', self._clean_text(text))
        if user is not None:
            log_user_action(self.logger, user.id, 'support_message', {'chatId': chat.id})
        return {'chat': chat_data}

    def post_admin_message(self, admin, chat_id, text):
        chat = self._require_chat(chat_id)
        text = self._clean_text(text)
        chat.admin_id = admin.id
        chat_data = self._append(chat, 'admin', text)

        self.logger.info(f"Admin {admin.id} replied in support chat {chat.id}")
        return {'chat': chat_data}

    def list_chats(self, status=None):
        query = SupportChat.query
        if status:
            query = query.filter_by(status=status)
        chats = query.order_by(SupportChat.updated_at.desc(), SupportChat.id.desc()).all()
        return {'chats': [chat.to_dict() for chat in chats]}

    def get_chat_by_id(self, chat_id):
        return {'chat': self._require_chat(chat_id).to_dict()}
