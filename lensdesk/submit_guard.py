"""
Pending-submission guard.

While a mutation for (user, action) is in flight, a second identical
submission is rejected instead of being sent upstream twice. Locks live in
memory and, when available, in Redis so they hold across workers. Redis
errors fall back to the in-memory lock (fail-open for the shared part).
"""

import logging
import time
from contextlib import asynccontextmanager
from threading import Lock
from typing import Callable, Optional

import redis

from .config import SUBMIT_LOCK_TTL
from .errors import DuplicateSubmission
from .redis_client import get_redis_client

logger = logging.getLogger(__name__)


class SubmitGuard:
    def __init__(self, client_factory: Callable[[], redis.Redis] = get_redis_client, ttl: int = SUBMIT_LOCK_TTL):
        self.client_factory = client_factory
        self.ttl = ttl
        # Format: {key: expires_at}
        self._pending: dict[str, float] = {}
        self._lock = Lock()

    @staticmethod
    def lock_key(user_id: Optional[str], action: str) -> str:
        return f"pending:{user_id or 'anonymous'}:{action}"

    def _redis(self) -> Optional[redis.Redis]:
        try:
            return self.client_factory()
        except Exception as e:
            logger.warning(f"⚠️ Submit guard running memory-only: {e}")
            return None

    def acquire(self, user_id: Optional[str], action: str) -> bool:
        """Try to mark an action as pending; False if it already is"""
        key = self.lock_key(user_id, action)
        now = time.monotonic()

        with self._lock:
            expires_at = self._pending.get(key)
            if expires_at and expires_at > now:
                return False
            self._pending[key] = now + self.ttl

        client = self._redis()
        if client is None:
            return True
        try:
            acquired = client.set(key, "1", nx=True, ex=self.ttl)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to set submit lock in Redis, using memory only: {e}")
            return True

        if not acquired:
            with self._lock:
                self._pending.pop(key, None)
            return False
        return True

    def release(self, user_id: Optional[str], action: str) -> None:
        key = self.lock_key(user_id, action)
        with self._lock:
            self._pending.pop(key, None)

        client = self._redis()
        if client is None:
            return
        try:
            client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to release submit lock {key}: {e}")

    @asynccontextmanager
    async def pending(self, user_id: Optional[str], action: str):
        """Hold the pending lock for the duration of one mutation"""
        if not self.acquire(user_id, action):
            logger.info(f"⏳ Rejected duplicate submission: {action} (user {user_id})")
            raise DuplicateSubmission(action)
        try:
            yield
        finally:
            self.release(user_id, action)


submit_guard = SubmitGuard()


def get_submit_guard() -> SubmitGuard:
    """FastAPI dependency for the shared submit guard"""
    return submit_guard
