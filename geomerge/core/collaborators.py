from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol, TypedDict

from geomerge.core.cell_memory import CellState
from geomerge.core.grid import Cell, CellBounds, LatLng


@dataclass(frozen=True, slots=True)
class VisibleCell:
    cell: Cell
    state: CellState
    bounds: CellBounds

    def to_payload(self) -> dict[str, Any]:
        return {
            "i": self.cell.i,
            "j": self.cell.j,
            "value": self.state.value,
            "collected": self.state.collected,
            "bounds": [[self.bounds.south, self.bounds.west], [self.bounds.north, self.bounds.east]],
        }


class Renderer(Protocol):
    def request_redraw(self, visible_cells: Sequence[VisibleCell]) -> None:  # pragma: no cover
        ...

    def request_status_update(self, held: int | None, won: bool) -> None:  # pragma: no cover
        ...

    def request_recenter(self, center: LatLng) -> None:  # pragma: no cover
        ...


class SnapshotPersistence(Protocol):
    def load_snapshot(self) -> dict[str, dict[str, Any]] | None:  # pragma: no cover
        ...

    def save_snapshot(self, blob: Mapping[str, Mapping[str, Any]]) -> None:  # pragma: no cover
        ...

    def clear_snapshot(self) -> None:  # pragma: no cover
        ...


def format_status(held: int | None, won: bool) -> str:
    if held is None:
        return "Held: —"
    return f"Held: {held}{' ✅ You win!' if won else ''}"


class RedrawMessage(TypedDict):
    type: Literal["redraw"]
    cells: list[dict[str, Any]]


class StatusMessage(TypedDict):
    type: Literal["status"]
    held: int | None
    won: bool
    text: str


class RecenterMessage(TypedDict):
    type: Literal["recenter"]
    lat: float
    lng: float


RenderMessage = RedrawMessage | StatusMessage | RecenterMessage


class OutboxRenderer:
    """Renderer that queues JSON-serializable messages instead of drawing.

    The API layer drains the outbox after each handled event and publishes the
    messages to WebSocket viewers. Only cells that ever had a token are sent.
    """

    def __init__(self) -> None:
        self._messages: list[RenderMessage] = []

    def request_redraw(self, visible_cells: Sequence[VisibleCell]) -> None:
        self._messages.append(
            RedrawMessage(
                type="redraw",
                cells=[vc.to_payload() for vc in visible_cells if vc.state.value is not None],
            )
        )

    def request_status_update(self, held: int | None, won: bool) -> None:
        self._messages.append(StatusMessage(type="status", held=held, won=won, text=format_status(held, won)))

    def request_recenter(self, center: LatLng) -> None:
        self._messages.append(RecenterMessage(type="recenter", lat=center.lat, lng=center.lng))

    def drain(self) -> list[RenderMessage]:
        out, self._messages = self._messages, []
        return out
