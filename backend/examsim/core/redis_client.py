from __future__ import annotations

import redis

from examsim.core.config import settings


def get_redis() -> redis.Redis:
    # Short socket timeouts: the quota check sits in front of every exam start.
    timeout = float(settings.redis_socket_timeout)
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
    )
