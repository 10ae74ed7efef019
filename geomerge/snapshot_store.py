from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import redis
from pydantic import BaseModel, Field

from geomerge.core.cell_memory import CellState


SESSIONS_SET_KEY = "geomerge:sessions"
WORLD_KEY_PREFIX = "geomerge:world:"  # + {session_id}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _world_key(session_id: str) -> str:
    return f"{WORLD_KEY_PREFIX}{session_id}"


class WorldSnapshot(BaseModel):
    session_id: str
    saved_at: datetime
    cells: dict[str, CellState] = Field(default_factory=dict)


class RedisSnapshotStore:
    """Persists one session's cell memory as a JSON document in Redis."""

    def __init__(self, *, r: redis.Redis, session_id: str) -> None:
        self._r = r
        self.session_id = session_id

    @property
    def key(self) -> str:
        return _world_key(self.session_id)

    def load_snapshot(self) -> dict[str, dict[str, Any]] | None:
        snapshot = get_snapshot(r=self._r, session_id=self.session_id)
        if snapshot is None:
            return None
        return {key: state.model_dump() for key, state in snapshot.cells.items()}

    def save_snapshot(self, blob: Mapping[str, Mapping[str, Any]]) -> None:
        snapshot = WorldSnapshot.model_validate({"session_id": self.session_id, "saved_at": _now(), "cells": blob})
        self._r.set(self.key, snapshot.model_dump_json())

    def clear_snapshot(self) -> None:
        self._r.delete(self.key)


def get_snapshot(*, r: redis.Redis, session_id: str) -> WorldSnapshot | None:
    raw = r.get(_world_key(session_id))
    if not raw:
        return None
    return WorldSnapshot.model_validate_json(raw)


def register_session(*, r: redis.Redis, session_id: str) -> None:
    r.sadd(SESSIONS_SET_KEY, session_id)


def has_snapshot(*, r: redis.Redis, session_id: str) -> bool:
    return bool(r.exists(_world_key(session_id)))


def known_session_ids(*, r: redis.Redis) -> list[str]:
    return sorted(r.smembers(SESSIONS_SET_KEY))
