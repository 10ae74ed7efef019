from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

import redis

from geomerge.config import GameConfig, load_config
from geomerge.core.collaborators import OutboxRenderer
from geomerge.core.errors import GameError
from geomerge.core.movement import MovementKind, PositionSource
from geomerge.core.session import GameSession
from geomerge.snapshot_store import RedisSnapshotStore, has_snapshot, known_session_ids, register_session

logger = logging.getLogger(__name__)

EVENT_LOCK_PREFIX = "geomerge:event:"  # + {session_id}


class SessionNotFound(LookupError):
    pass


class SessionBusy(GameError):
    code = "session_busy"


@dataclass(slots=True)
class SessionHandle:
    session_id: str
    session: GameSession
    outbox: OutboxRenderer
    created_at: datetime


class SessionRegistry:
    """In-process owner of live game sessions.

    Each session's world snapshot lives in Redis, so closing and re-creating a
    session with the same id restores the collected cells.
    """

    def __init__(self, config: GameConfig | None = None) -> None:
        self._config = config
        self._sessions: dict[str, SessionHandle] = {}

    @property
    def config(self) -> GameConfig:
        if self._config is None:
            self._config = load_config()
        return self._config

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(
        self,
        *,
        r: redis.Redis,
        session_id: str | None = None,
        geolocation_available: bool = True,
        movement: MovementKind | None = None,
    ) -> SessionHandle:
        sid = session_id or uuid4().hex
        if sid in self._sessions:
            raise ValueError("Session already exists")

        config = self.config
        if movement is not None and movement != config.initial_movement:
            config = config.model_copy(update={"initial_movement": movement})

        outbox = OutboxRenderer()
        session = GameSession(
            config=config,
            renderer=outbox,
            persistence=RedisSnapshotStore(r=r, session_id=sid),
            positions=PositionSource(available=geolocation_available),
        )
        session.start()

        handle = SessionHandle(session_id=sid, session=session, outbox=outbox, created_at=datetime.now(tz=UTC))
        self._sessions[sid] = handle
        register_session(r=r, session_id=sid)
        logger.info("created session %s (%s movement)", sid, config.initial_movement.value)
        return handle

    def require(self, session_id: str) -> SessionHandle:
        handle = self._sessions.get(session_id)
        if handle is None:
            raise SessionNotFound("Session not found")
        return handle

    def handles(self) -> list[SessionHandle]:
        return sorted(self._sessions.values(), key=lambda h: h.created_at, reverse=True)

    def resumable(self, *, r: redis.Redis) -> list[str]:
        """Ids of sessions that are not live here but left a saved world behind."""

        return [sid for sid in known_session_ids(r=r) if sid not in self._sessions and has_snapshot(r=r, session_id=sid)]

    @contextmanager
    def event(self, *, r: redis.Redis, session_id: str, ttl_ms: int = 5_000) -> Iterator[GameSession]:
        """Handle one input event (click, button, position sample, ...) for a live session.

        Events for the same session never overlap, even across API workers sharing Redis.
        The marker only expires after `ttl_ms` if a handler dies without releasing it.
        """

        handle = self.require(session_id)
        key = f"{EVENT_LOCK_PREFIX}{session_id}"
        if not r.set(key, handle.created_at.isoformat(), nx=True, px=ttl_ms):
            raise SessionBusy("Session is busy")
        try:
            yield handle.session
        finally:
            r.delete(key)

    def close(self, session_id: str) -> None:
        handle = self.require(session_id)
        handle.session.close()
        del self._sessions[session_id]
        logger.info("closed session %s", session_id)

    def close_all(self) -> None:
        for handle in self._sessions.values():
            handle.session.close()
        self._sessions.clear()


registry = SessionRegistry()
