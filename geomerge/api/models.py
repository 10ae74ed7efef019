from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from geomerge.core.cell_memory import CellPolicy
from geomerge.core.movement import LocationErrorKind, MovementKind
from geomerge.core.session import InteractionKind


class SessionCreateRequest(BaseModel):
    session_id: str | None = Field(default=None, min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    # Whether the client device can provide positions at all.
    geolocation_available: bool = True
    movement: MovementKind | None = None


class CellModel(BaseModel):
    i: int
    j: int


class InteractRequest(CellModel):
    pass


class MovementRequest(BaseModel):
    kind: MovementKind


class PositionSampleRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)


class LocationErrorRequest(BaseModel):
    kind: LocationErrorKind
    message: str = Field(default="", max_length=500)


class SessionState(BaseModel):
    session_id: str
    created_at: datetime
    player: CellModel
    held: int | None = None
    won: bool = False
    status_text: str
    target_value: int
    interaction_range: int
    cell_policy: CellPolicy
    movement: MovementKind | None = None
    movement_error: str | None = None
    cells_in_memory: int


class SessionListResponse(BaseModel):
    sessions: list[SessionState]
    # Closed sessions whose saved world can be picked up again with POST /session.
    resumable: list[str] = Field(default_factory=list)


class CellView(BaseModel):
    i: int
    j: int
    value: int | None = None
    collected: bool = False
    # [[south, west], [north, east]]
    bounds: list[list[float]]


class CellsResponse(BaseModel):
    session_id: str
    player: CellModel
    cells: list[CellView]


class InteractResponse(BaseModel):
    kind: InteractionKind
    target: CellModel
    value: int
    session: SessionState


class PositionResponse(BaseModel):
    delivered: int
    session: SessionState
