from __future__ import annotations

from collections.abc import Generator

import redis

from geomerge.infra.redis_client import get_shared_redis
from geomerge.service import SessionRegistry, registry


def get_redis() -> Generator[redis.Redis, None, None]:
    yield get_shared_redis()


def get_registry() -> SessionRegistry:
    return registry
