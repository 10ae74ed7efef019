from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status
import redis

from geomerge.api.deps import get_redis, get_registry
from geomerge.api.models import (
    CellModel,
    CellsResponse,
    CellView,
    InteractRequest,
    InteractResponse,
    LocationErrorRequest,
    MovementRequest,
    PositionResponse,
    PositionSampleRequest,
    SessionCreateRequest,
    SessionListResponse,
    SessionState,
)
from geomerge.core.collaborators import format_status
from geomerge.core.grid import Cell
from geomerge.core.movement import Direction, LocationError, PositionSample
from geomerge.core.session import GameSession
from geomerge.service import SessionHandle, SessionNotFound, SessionRegistry
from geomerge.websocket_hub import hub

router = APIRouter()


def _require(registry: SessionRegistry, session_id: str) -> SessionHandle:
    try:
        return registry.require(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


def _unprocessable(e: ValueError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"code": getattr(e, "code", "invalid_request"), "message": str(e)},
    )


@contextmanager
def _event(registry: SessionRegistry, r: redis.Redis, session_id: str) -> Iterator[GameSession]:
    _require(registry, session_id)
    try:
        with registry.event(r=r, session_id=session_id) as session:
            yield session
    except ValueError as e:
        raise _unprocessable(e) from e


def _session_state(handle: SessionHandle) -> SessionState:
    session = handle.session
    st = session.status()
    return SessionState(
        session_id=handle.session_id,
        created_at=handle.created_at,
        player=CellModel(i=st.player.i, j=st.player.j),
        held=st.held,
        won=st.won,
        status_text=format_status(st.held, st.won),
        target_value=session.config.target_value,
        interaction_range=session.config.interaction_range,
        cell_policy=session.config.cell_policy,
        movement=st.movement,
        movement_error=st.movement_error,
        cells_in_memory=st.cells_in_memory,
    )


async def _published_state(registry: SessionRegistry, session_id: str) -> SessionState:
    handle = registry.require(session_id)
    await hub.publish(session_id, handle.outbox)
    return _session_state(handle)


@router.websocket("/ws/session/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: str) -> None:
    await hub.join(session_id, websocket)

    try:
        # Viewers only listen; anything they send is ignored.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.leave(session_id, websocket)
    except Exception:
        hub.leave(session_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/session", response_model=SessionState, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    if payload.session_id is not None and payload.session_id in registry:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session already exists")
    try:
        handle = registry.create(
            r=r,
            session_id=payload.session_id,
            geolocation_available=payload.geolocation_available,
            movement=payload.movement,
        )
    except ValueError as e:
        raise _unprocessable(e) from e

    return await _published_state(registry, handle.session_id)


@router.get("/session", response_model=SessionListResponse)
async def list_sessions_route(
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionListResponse:
    return SessionListResponse(
        sessions=[_session_state(h) for h in registry.handles()],
        resumable=registry.resumable(r=r),
    )


@router.get("/session/{session_id}", response_model=SessionState)
async def get_session_route(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionState:
    return _session_state(_require(registry, session_id))


@router.delete("/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session_route(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> Response:
    _require(registry, session_id)
    registry.close(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/session/{session_id}/cells", response_model=CellsResponse)
async def visible_cells_route(
    session_id: str,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> CellsResponse:
    with _event(registry, r, session_id) as session:
        visible = session.visible_cells()
        player = session.player

    return CellsResponse(
        session_id=session_id,
        player=CellModel(i=player.i, j=player.j),
        cells=[CellView.model_validate(vc.to_payload()) for vc in visible],
    )


@router.post("/session/{session_id}/interact", response_model=InteractResponse)
async def interact_route(
    session_id: str,
    payload: InteractRequest,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> InteractResponse:
    with _event(registry, r, session_id) as session:
        outcome = session.interact(Cell(payload.i, payload.j))

    return InteractResponse(
        kind=outcome.kind,
        target=CellModel(i=outcome.target.i, j=outcome.target.j),
        value=outcome.value,
        session=await _published_state(registry, session_id),
    )


@router.post("/session/{session_id}/move/{direction}", response_model=SessionState)
async def move_route(
    session_id: str,
    direction: Direction,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    with _event(registry, r, session_id) as session:
        handled = session.buttons.press(direction)

    if not handled:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Button movement is not active")
    return await _published_state(registry, session_id)


@router.put("/session/{session_id}/movement", response_model=SessionState)
async def movement_route(
    session_id: str,
    payload: MovementRequest,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    with _event(registry, r, session_id) as session:
        session.use_movement(payload.kind)

    return await _published_state(registry, session_id)


@router.post("/session/{session_id}/position", response_model=PositionResponse)
async def position_route(
    session_id: str,
    payload: PositionSampleRequest,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> PositionResponse:
    """Feed one geolocation sample (e.g. a browser `watchPosition` callback) into the session."""

    sample = PositionSample(latitude=payload.latitude, longitude=payload.longitude, accuracy=payload.accuracy)
    with _event(registry, r, session_id) as session:
        delivered = session.positions.push(sample)
        movement_error = session.movement_error

    if not delivered:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=movement_error or "Geolocation movement is not active",
        )
    return PositionResponse(delivered=delivered, session=await _published_state(registry, session_id))


@router.post("/session/{session_id}/position/error", response_model=SessionState)
async def position_error_route(
    session_id: str,
    payload: LocationErrorRequest,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    with _event(registry, r, session_id) as session:
        session.positions.fail(LocationError(kind=payload.kind, message=payload.message))

    return await _published_state(registry, session_id)


@router.post("/session/{session_id}/reset", response_model=SessionState)
async def reset_route(
    session_id: str,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    with _event(registry, r, session_id) as session:
        session.reset()

    return await _published_state(registry, session_id)
