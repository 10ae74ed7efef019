from __future__ import annotations

import logging
from collections.abc import Sequence

from fastapi import WebSocket

from geomerge.core.collaborators import OutboxRenderer, RenderMessage

logger = logging.getLogger(__name__)


def coalesce(messages: Sequence[RenderMessage]) -> list[RenderMessage]:
    """Drop every redraw except the last one of a batch.

    A redraw carries the whole visible window, so earlier ones are superseded.
    Relative order of the remaining messages is kept.
    """

    last_redraw = max((idx for idx, m in enumerate(messages) if m["type"] == "redraw"), default=None)
    return [m for idx, m in enumerate(messages) if m["type"] != "redraw" or idx == last_redraw]


class SessionUpdateHub:
    """Fans a session's queued render messages out to the WebSockets viewing it.

    Runs on the event loop only; viewer lists are copied before awaiting sends.
    """

    def __init__(self) -> None:
        self._viewers: dict[str, list[WebSocket]] = {}

    def viewer_count(self, session_id: str) -> int:
        return len(self._viewers.get(session_id, ()))

    async def join(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._viewers.setdefault(session_id, []).append(websocket)

    def leave(self, session_id: str, websocket: WebSocket) -> None:
        viewers = self._viewers.get(session_id)
        if viewers is None:
            return
        if websocket in viewers:
            viewers.remove(websocket)
        if not viewers:
            del self._viewers[session_id]

    async def publish(self, session_id: str, outbox: OutboxRenderer) -> int:
        """Drain `outbox` and send its messages to every viewer; returns how many were sent per viewer."""

        messages = coalesce(outbox.drain())
        if not messages:
            return 0

        for ws in list(self._viewers.get(session_id, ())):
            try:
                for message in messages:
                    await ws.send_json(message)
            except Exception as e:
                logger.debug("dropping viewer of session %s: %s", session_id, e)
                self.leave(session_id, ws)
        return len(messages)


hub = SessionUpdateHub()
