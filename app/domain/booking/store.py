"""
Redis-backed storage for in-progress booking sessions

Each session is one Redis entry holding the full encoded configuration.
Writes are best effort: a failed write is logged and reported as False,
never raised, because the customer can re-enter a lost step.
"""

import logging
from typing import Callable, Optional

import redis

from ...config import BOOKING_SESSION_KEY_PREFIX, BOOKING_SESSION_TTL_SECONDS
from ...rate_limiter import get_redis_client
from . import codec
from .schemas import BookingConfiguration

logger = logging.getLogger(__name__)


class BookingSessionStore:
    """Load/save/clear booking sessions by session id"""

    def __init__(
        self,
        client_factory: Callable[[], redis.Redis] = get_redis_client,
        key_prefix: str = BOOKING_SESSION_KEY_PREFIX,
        ttl: int = BOOKING_SESSION_TTL_SECONDS,
    ):
        self.client_factory = client_factory
        self.key_prefix = key_prefix
        self.ttl = ttl
        self.redis_client = None

    def _get_client(self) -> Optional[redis.Redis]:
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = self.client_factory()
            except Exception as e:
                logger.warning(f"⚠️ Booking session store unavailable: {e}")
                return None
        return self.redis_client

    def key_for(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"

    def load(self, session_id: str) -> Optional[BookingConfiguration]:
        """Stored configuration, or None when there is no usable prior session"""
        client = self._get_client()
        if not client:
            return None

        key = self.key_for(session_id)
        try:
            raw = client.get(key)
        except redis.RedisError as e:
            logger.error(f"❌ Booking session read error for {key}: {e}")
            return None

        if raw is None:
            logger.debug(f"❌ No booking session: {key}")
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return codec.decode(raw)

    def save(self, session_id: str, state: BookingConfiguration) -> bool:
        client = self._get_client()
        if not client:
            return False

        key = self.key_for(session_id)
        try:
            client.setex(key, self.ttl, codec.encode(state))
            logger.debug(f"✅ Booking session SET: {key}")
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Booking session write error for {key}: {e}")
            return False

    def clear(self, session_id: str) -> bool:
        client = self._get_client()
        if not client:
            return False

        key = self.key_for(session_id)
        try:
            client.delete(key)
            logger.debug(f"✅ Booking session DELETE: {key}")
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Booking session delete error for {key}: {e}")
            return False
