import json
from typing import Any, Optional


class CacheManager:
    def __init__(self, redis_client, logger=None):
        self.redis = redis_client
        self.logger = logger

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        try:
            data = self.redis.get(key)
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            self._warn('get', key, e)
            return None

    def set(self, key: str, value: Any, ttl: int = 300):
        """Set value in cache with TTL"""
        try:
            self.redis.setex(key, ttl, json.dumps(value))
            return True
        except Exception as e:
            self._warn('set', key, e)
            return False

    def delete(self, *keys: str):
        """Delete keys from cache"""
        if not keys:
            return True
        try:
            self.redis.delete(*keys)
            return True
        except Exception as e:
            self._warn('delete', ','.join(keys), e)
            return False

    def _warn(self, operation, key, error):
        if self.logger:
            self.logger.warning(f"Cache {operation} failed for {key}: {error}")


FEED_CACHE_TTL = 300


def feed_cache_key(user_id):
    return f"matches_{user_id}"
