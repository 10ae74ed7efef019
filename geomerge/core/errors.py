from __future__ import annotations

from geomerge.core.grid import Cell


class GameError(ValueError):
    """Base for local, non-fatal game errors.

    Subclasses `ValueError` so the API layer can translate every domain rejection
    the same way. `code` is stable and safe to send to clients.
    """

    code = "game_error"


class OutOfRange(GameError):
    code = "out_of_range"

    def __init__(self, *, target: Cell, distance: int, interaction_range: int) -> None:
        self.target = target
        self.distance = distance
        self.interaction_range = interaction_range
        super().__init__(
            f"Cell {target.key} is {distance} cells away (interaction range is {interaction_range})"
        )


class EmptyCell(GameError):
    code = "empty_cell"

    def __init__(self, *, target: Cell) -> None:
        self.target = target
        super().__init__(f"Cell {target.key} has no token to collect")


class ValueMismatch(GameError):
    code = "value_mismatch"

    def __init__(self, *, target: Cell, held: int, value: int) -> None:
        self.target = target
        self.held = held
        self.value = value
        super().__init__(f"Cannot merge held token {held} with cell {target.key} token {value}")


class CapabilityUnavailable(GameError):
    code = "capability_unavailable"
