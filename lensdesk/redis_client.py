"""
Shared Redis connection for the query cache and pending-submission locks
"""

import logging
from typing import Optional

import redis

from .config import REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT, REDIS_SSL, REDIS_URL

logger = logging.getLogger(__name__)

# Cache reads sit on the request path, keep timeouts short
CONNECTION_OPTIONS = {
    "decode_responses": True,
    "socket_connect_timeout": 3,
    "socket_timeout": 3,
    "retry_on_timeout": True,
    "health_check_interval": 30,
}

redis_client: Optional[redis.Redis] = None


def _describe(url: Optional[str]) -> str:
    """Connection target for logging, without credentials"""
    if url:
        return url.rsplit("@", 1)[-1] if "@" in url else url.split("://", 1)[-1]
    return f"{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}{' (ssl)' if REDIS_SSL else ''}"


def _connect() -> redis.Redis:
    if REDIS_URL:
        return redis.from_url(REDIS_URL, **CONNECTION_OPTIONS)
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        password=REDIS_PASSWORD,
        db=REDIS_DB,
        ssl=REDIS_SSL,
        **CONNECTION_OPTIONS,
    )


def get_redis_client() -> redis.Redis:
    """
    Get or create the Redis client.
    Raises when Redis cannot be reached; callers decide how to fail open.
    """
    global redis_client

    if redis_client is None:
        target = _describe(REDIS_URL)
        client = _connect()
        try:
            client.ping()
        except redis.RedisError as e:
            logger.error(f"❌ Redis unreachable at {target}: {e}")
            raise
        logger.info(f"✅ Redis connected at {target}")
        redis_client = client

    return redis_client
