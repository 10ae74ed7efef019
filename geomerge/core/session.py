from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from functools import partial

from geomerge.config import GameConfig
from geomerge.core.cell_memory import CellMemoryStore, CellPolicy
from geomerge.core.collaborators import Renderer, SnapshotPersistence, VisibleCell
from geomerge.core.errors import CapabilityUnavailable, EmptyCell, OutOfRange, ValueMismatch
from geomerge.core.grid import Cell, CellDelta, distance, neighborhood
from geomerge.core.movement import (
    ButtonMovementController,
    ButtonSource,
    GeolocationMovementController,
    MovementKind,
    MovementSwitch,
    PositionSource,
)
from geomerge.fsm import HeldTokenFSM

logger = logging.getLogger(__name__)


class InteractionKind(StrEnum):
    picked_up = "picked_up"
    merged = "merged"


@dataclass(frozen=True, slots=True)
class InteractionOutcome:
    kind: InteractionKind
    target: Cell
    value: int
    held: int
    won: bool


@dataclass(frozen=True, slots=True)
class SessionStatus:
    player: Cell
    held: int | None
    won: bool
    movement: MovementKind | None
    movement_error: str | None
    cells_in_memory: int


class GameSession:
    """Single-player world state: player cell, held token, cell memory and movement.

    All methods are synchronous and expected to be called one event at a time;
    the owner (API layer, CLI, test) provides that ordering.
    """

    def __init__(
        self,
        *,
        config: GameConfig,
        renderer: Renderer,
        persistence: SnapshotPersistence | None = None,
        buttons: ButtonSource | None = None,
        positions: PositionSource | None = None,
    ) -> None:
        self.config = config
        self.mapper = config.mapper()
        self.store = CellMemoryStore(config.spawn_table())
        self.player = self.mapper.to_cell(config.origin)
        self.won = False
        self.movement_error: str | None = None

        self.buttons = buttons if buttons is not None else ButtonSource()
        self.positions = positions if positions is not None else PositionSource()

        self._renderer = renderer
        self._persistence = persistence
        self._fsm = HeldTokenFSM()
        self._started = False

        self.movement = MovementSwitch(
            {
                MovementKind.buttons: ButtonMovementController(
                    source=self.buttons,
                    on_delta=partial(self._controller_delta, MovementKind.buttons),
                ),
                MovementKind.geolocation: GeolocationMovementController(
                    source=self.positions,
                    mapper=self.mapper,
                    on_delta=partial(self._controller_delta, MovementKind.geolocation),
                    on_unavailable=self._movement_unavailable,
                ),
            }
        )

    @property
    def held(self) -> int | None:
        return self._fsm.held

    @property
    def memoryful(self) -> bool:
        return self.config.cell_policy == CellPolicy.memoryful

    def start(self) -> None:
        if self._started:
            return
        if self._persistence is not None and self.memoryful:
            blob = self._persistence.load_snapshot()
            if blob:
                self.store.hydrate(blob)
                logger.info("restored %d cells from snapshot", len(self.store))
        self._started = True
        self.movement.activate(self.config.initial_movement)
        self._redraw()
        self._report_status()

    def close(self) -> None:
        self.movement.deactivate()

    def status(self) -> SessionStatus:
        return SessionStatus(
            player=self.player,
            held=self.held,
            won=self.won,
            movement=self.movement.active_kind,
            movement_error=self.movement_error,
            cells_in_memory=len(self.store),
        )

    def visible_cells(self) -> list[VisibleCell]:
        window = list(neighborhood(self.player, self.config.neighborhood_radius))
        if not self.memoryful:
            self.store.retain_only(window)
        return [VisibleCell(cell=c, state=self.store.get(c), bounds=self.mapper.from_cell(c)) for c in window]

    def interact(self, target: Cell) -> InteractionOutcome:
        gap = distance(self.player, target)
        if gap > self.config.interaction_range:
            logger.info("rejected interaction at %s: out of range (%d)", target.key, gap)
            raise OutOfRange(target=target, distance=gap, interaction_range=self.config.interaction_range)

        state = self.store.get(target)
        if not state.has_token or state.value is None:
            logger.info("rejected interaction at %s: empty cell", target.key)
            raise EmptyCell(target=target)
        value = state.value

        if self._fsm.slot_empty:
            self._fsm.pick_up(value=value)
            kind = InteractionKind.picked_up
        elif self.held == value:
            self._fsm.merge()
            kind = InteractionKind.merged
        else:
            held = self.held
            assert held is not None
            logger.info("rejected interaction at %s: holding %d, cell has %d", target.key, held, value)
            raise ValueMismatch(target=target, held=held, value=value)

        self.store.mark_collected(target)
        held = self.held
        assert held is not None
        if held >= self.config.target_value and not self.won:
            logger.info("target %d reached", self.config.target_value)
            self.won = True

        logger.debug("%s %d at %s; holding %d", kind.value, value, target.key, held)
        self._save()
        self._redraw()
        self._report_status()
        return InteractionOutcome(kind=kind, target=target, value=value, held=held, won=self.won)

    def apply_delta(self, delta: CellDelta) -> Cell:
        self.player = self.player.offset(delta)
        self._renderer.request_recenter(self.mapper.from_cell(self.player).center)
        self._redraw()
        self._report_status()
        return self.player

    def use_movement(self, kind: MovementKind) -> SessionStatus:
        self.movement_error = None
        self.movement.activate(kind)
        self._report_status()
        return self.status()

    def reset(self) -> None:
        self._fsm.release()
        self.won = False
        self.store.reset()
        if self._persistence is not None:
            self._persistence.clear_snapshot()
        logger.info("session reset")
        self._redraw()
        self._report_status()

    def _controller_delta(self, kind: MovementKind, delta: CellDelta) -> None:
        if not self.movement.is_current(kind):
            logger.warning("dropping %s delta from inactive controller", kind.value)
            return
        self.apply_delta(delta)

    def _movement_unavailable(self, err: CapabilityUnavailable) -> None:
        self.movement_error = str(err)

    def _save(self) -> None:
        if self._persistence is not None and self.memoryful:
            self._persistence.save_snapshot(self.store.serialize())

    def _redraw(self) -> None:
        self._renderer.request_redraw(self.visible_cells())

    def _report_status(self) -> None:
        self._renderer.request_status_update(self.held, self.won)
