from models import User
from utils.errors import NotFound


class BaseService:
    def __init__(self, db, logger):
        self.db = db
        self.logger = logger

    def require_user(self, user_id, include_deleted=False):
        """Load a user or raise NotFound; soft-deleted accounts count as missing"""
        user = self.db.session.get(User, user_id) if user_id else None
        if not user or (user.is_deleted and not include_deleted):
            raise NotFound('User not found')
        return user

    def require_users(self, *user_ids):
        return [self.require_user(user_id) for user_id in user_ids]
