"""Redis connection for the shared session store.

One client per process, created on first use. REDIS_URL selects the server;
REDIS_PASSWORD is applied only when the URL carries no password of its own.
"""

import logging
import threading
from typing import Any, Optional
from urllib.parse import urlparse

import redis

from credman_api.config.env import get_redis_password, get_redis_url

logger = logging.getLogger(__name__)

SOCKET_TIMEOUT_SECONDS = 5
HEALTH_CHECK_INTERVAL_SECONDS = 30


def build_redis_kwargs(redis_url: str, redis_password: Optional[str]) -> dict[str, Any]:
    """Connection options for ``redis.from_url``."""
    kwargs: dict[str, Any] = {
        "decode_responses": True,
        "socket_connect_timeout": SOCKET_TIMEOUT_SECONDS,
        "socket_timeout": SOCKET_TIMEOUT_SECONDS,
        "health_check_interval": HEALTH_CHECK_INTERVAL_SECONDS,
    }
    if redis_password and not urlparse(redis_url).password:
        kwargs["password"] = redis_password
    return kwargs


class RedisClient:
    """Process-wide Redis client used by RedisSessionStore."""

    _instance: Optional[redis.Redis] = None
    _lock = threading.Lock()

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    redis_url = get_redis_url()
                    cls._instance = redis.from_url(redis_url, **build_redis_kwargs(redis_url, get_redis_password()))
                    parsed = urlparse(redis_url)
                    logger.info(
                        "Session Redis client configured",
                        extra={
                            "event": "redis.configured",
                            "redis_host": parsed.hostname,
                            "redis_port": parsed.port,
                            "tls": parsed.scheme == "rediss",
                        },
                    )
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached client (tests, config reloads)."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
                cls._instance = None
