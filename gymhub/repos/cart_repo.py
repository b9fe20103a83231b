# gymhub/repos/cart_repo.py
import json
from typing import Any, Dict, List

import redis
from redis.exceptions import RedisError

from gymhub.utils.retry import redis_retry
from gymhub.utils.settings import REDIS_URL, CART_TTL_SECONDS
from gymhub.utils.logging import get_logger

logger = get_logger(__name__)


class CartRepo:
    """
    Session-scoped cart snapshot in redis.
    -key cart:{session_id}, json list of cart items
    -TTL refreshed on every save, the snapshot dies with the session
    """

    def __init__(self, client: redis.Redis | None = None, url: str | None = None, ttl: int = CART_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @staticmethod
    def _key(session_id: str) -> str:
        return f"cart:{session_id}"

    @redis_retry()
    def save(self, session_id: str, items: List[Dict[str, Any]]) -> None:
        key = self._key(session_id)
        logger.info(f"Save cart snapshot {key} ({len(items)} items)")
        #SET cart:abc "[...]" EX 900
        self.redis.set(name=key, value=json.dumps(items), ex=self.ttl)

    @redis_retry()
    def load(self, session_id: str) -> List[Dict[str, Any]]:
        raw = self.redis.get(self._key(session_id))
        if not raw:
            return []
        return json.loads(raw)

    @redis_retry()
    def delete(self, session_id: str) -> None:
        key = self._key(session_id)
        logger.info(f"Delete cart snapshot {key}")
        self.redis.delete(key)


def save_quietly(repo: CartRepo, session_id: str, items: List[Dict[str, Any]]) -> bool:
    """Best effort save, the in-memory cart stays authoritative."""
    try:
        repo.save(session_id, items)
        return True
    except RedisError as e:
        logger.warning(f"Failed to save cart snapshot for {session_id}: {e}")
        return False
