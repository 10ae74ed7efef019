from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from geomerge.core.grid import Cell
from geomerge.core.spawn import SpawnTable

logger = logging.getLogger(__name__)


class CellPolicy(StrEnum):
    # Collected cells stay collected after leaving the window (and across sessions, if persisted).
    memoryful = "memoryful"
    # Cells outside the window are forgotten and re-derived from the spawn table on return.
    memoryless = "memoryless"


class CellState(BaseModel):
    value: int | None = None
    collected: bool = False

    @property
    def has_token(self) -> bool:
        return self.value is not None and not self.collected


class CellMemoryStore:
    """Lazily populated mapping of cell -> CellState.

    Entries are created on first `get` from the spawn table and then never
    re-derived until `reset()` (or, for memoryless play, `retain_only`).
    """

    def __init__(self, spawn: SpawnTable) -> None:
        self._spawn = spawn
        self._cells: dict[Cell, CellState] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, cell: object) -> bool:
        return cell in self._cells

    def get(self, cell: Cell) -> CellState:
        state = self._cells.get(cell)
        if state is None:
            state = CellState(value=self._spawn.value_for(cell), collected=False)
            self._cells[cell] = state
        return state

    def peek(self, cell: Cell) -> CellState | None:
        return self._cells.get(cell)

    def mark_collected(self, cell: Cell) -> bool:
        """Flip `collected` on an existing, uncollected, valued entry.

        Anything else is a no-op; callers are expected to have checked already.
        The stored value is kept as-is for debugging.
        """

        state = self._cells.get(cell)
        if state is None or state.value is None or state.collected:
            logger.debug("mark_collected ignored for cell %s", cell.key)
            return False
        state.collected = True
        return True

    def reset(self) -> None:
        self._cells.clear()

    def retain_only(self, cells: Iterable[Cell]) -> int:
        keep = set(cells)
        dropped = [c for c in self._cells if c not in keep]
        for c in dropped:
            del self._cells[c]
        return len(dropped)

    def serialize(self) -> dict[str, dict[str, Any]]:
        return {cell.key: state.model_dump() for cell, state in sorted(self._cells.items())}

    def hydrate(self, blob: Mapping[str, Mapping[str, Any]]) -> None:
        for key, raw in blob.items():
            self._cells[Cell.from_key(key)] = CellState.model_validate(raw)
