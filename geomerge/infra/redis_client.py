from __future__ import annotations

import os

import redis

_CLIENT: redis.Redis | None = None


def get_redis_url() -> str:
    return os.environ.get("REDIS_URL", "redis://localhost:6379/0")


def create_redis() -> redis.Redis:
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(get_redis_url(), decode_responses=True)


def get_shared_redis() -> redis.Redis:
    """Process-wide client.

    Sessions outlive a single request and keep a handle for their world snapshots,
    so they share one client (and its connection pool) instead of a per-request one.
    """

    global _CLIENT
    if _CLIENT is None:
        _CLIENT = create_redis()
    return _CLIENT


def close_shared_redis() -> None:
    global _CLIENT
    if _CLIENT is not None:
        _CLIENT.close()
    _CLIENT = None
