import threading
from datetime import datetime

from flask_socketio import SocketIO, ConnectionRefusedError, emit, join_room
from flask import request

from auth.decorators import authenticate
from models import SupportChat, User
from services.support_service import support_room
from utils.errors import APIError, ValidationError
from utils.helpers import conversation_room, user_room
from utils.validators import validate_user_id


class WebSocketService:
    def __init__(self, app, logger, cors_allowed_origins=None):
        self.app = app
        self.logger = logger
        self.db = None
        self.messaging = None
        self.support = None
        # sid -> user id for authenticated connections; guarded by _connections_lock
        self.connected_users = {}
        self._connections_lock = threading.Lock()
        self.socketio = SocketIO(
            app,
            cors_allowed_origins=cors_allowed_origins or '*',
            async_mode='threading',
            ping_timeout=60,
            ping_interval=25
        )
        self.setup_handlers()

    def bind_services(self, db, messaging, support):
        """Socket events share the HTTP services; they are created after the server"""
        self.db = db
        self.messaging = messaging
        self.support = support

    def _register_connection(self, sid, user_id):
        with self._connections_lock:
            self.connected_users[sid] = user_id

    def _unregister_connection(self, sid):
        """Drop a sid; returns its user and whether another socket of theirs remains"""
        with self._connections_lock:
            user_id = self.connected_users.pop(sid, None)
            still_connected = user_id is not None and user_id in self.connected_users.values()
        return user_id, still_connected

    def _connected_user(self, sid):
        with self._connections_lock:
            return self.connected_users.get(sid)

    def _current_user_id(self):
        user_id = self._connected_user(request.sid)
        if user_id is None:
            emit('error', {'error': 'Authentication required', 'code': 'AUTH_REQUIRED'})
        return user_id

    def _set_online(self, user_id, online):
        user = self.db.session.get(User, user_id)
        if not user:
            return
        user.is_online = online
        user.touch()
        self.db.session.commit()

    def setup_handlers(self):
        @self.socketio.on('connect')
        def handle_connect(auth=None):
            token = None
            if isinstance(auth, dict):
                token = auth.get('token')
            token = token or request.args.get('token')

            try:
                user = authenticate(token)
            except APIError as e:
                self.logger.warning(f"WebSocket connection refused: {e.message}")
                raise ConnectionRefusedError(e.message)

            self._register_connection(request.sid, user.id)
            join_room(user_room(user.id))
            emit('connection_established', {'status': 'connected', 'userId': user.id})
            self.logger.info(f"WebSocket connected: user {user.id} ({request.sid})")

        @self.socketio.on('join')
        def handle_join(data=None):
            user_id = self._current_user_id()
            if user_id is None:
                return
            join_room(user_room(user_id))
            self._set_online(user_id, True)
            self.socketio.emit('userOnline', {'userId': user_id})

        @self.socketio.on('join_conversation')
        def handle_join_conversation(data):
            user_id = self._current_user_id()
            if user_id is None:
                return
            other_id = validate_user_id((data or {}).get('otherUserId'))
            if other_id is None:
                emit('error', {'error': 'otherUserId is required', 'code': 'VALIDATION_ERROR'})
                return
            join_room(conversation_room(user_id, other_id))

        @self.socketio.on('sendMessage')
        def handle_send_message(data):
            user_id = self._current_user_id()
            if user_id is None:
                return
            data = data or {}
            try:
                receiver_id = validate_user_id(data.get('receiverId'))
                if receiver_id is None:
                    raise ValidationError('receiverId is required', details={'field': 'receiverId'})
                self.messaging.send_message(user_id, receiver_id, data.get('message'))
            except APIError as e:
                self.db.session.rollback()
                emit('error', e.to_dict())

        @self.socketio.on('join_support_chat')
        def handle_join_support_chat(data):
            if not isinstance(data, dict):
                data = {'chatId': data}
            chat = self.db.session.get(SupportChat, validate_user_id(data.get('chatId')) or 0)
            user_id = self._connected_user(request.sid)
            user = self.db.session.get(User, user_id) if user_id else None
            if not chat or not self.support.can_access(chat, user, data.get('identifier')):
                emit('error', {'error': 'Support chat not available', 'code': 'FORBIDDEN'})
                return
            join_room(support_room(chat.id))

        @self.socketio.on('disconnect')
        def handle_disconnect(*args):
            user_id, still_connected = self._unregister_connection(request.sid)
            self.logger.info(f"WebSocket disconnected: {request.sid}")
            if user_id is None or still_connected:
                return
            self._set_online(user_id, False)
            self.socketio.emit('userOffline', {
                'userId': user_id,
                'lastActive': datetime.utcnow().isoformat()
            })

    def emit_to_room(self, room, event, data):
        try:
            self.socketio.emit(event, data, to=room)
        except Exception as e:
            self.logger.error(f"Failed to emit {event} to {room}: {e}")

    def emit_to_user(self, user_id, event, data):
        self.emit_to_room(user_room(user_id), event, data)

    def run(self, host='0.0.0.0', port=3000, debug=False):
        self.socketio.run(self.app, host=host, port=port, debug=debug, allow_unsafe_werkzeug=True)
