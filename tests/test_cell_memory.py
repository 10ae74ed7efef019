from __future__ import annotations

from geomerge.core.cell_memory import CellMemoryStore, CellState
from geomerge.core.grid import Cell, neighborhood
from geomerge.core.spawn import SpawnBand, SpawnTable


class _CountingSpawn(SpawnTable):
    def __init__(self) -> None:
        super().__init__((SpawnBand(0.5, 4),))
        self.calls: list[Cell] = []

    def value_for(self, cell: Cell) -> int | None:
        self.calls.append(cell)
        return super().value_for(cell)


def _valued_and_empty(spawn: SpawnTable) -> tuple[Cell, Cell]:
    cells = list(neighborhood(Cell(0, 0), 5))
    valued = next(c for c in cells if spawn.value_for(c) is not None)
    empty = next(c for c in cells if spawn.value_for(c) is None)
    return valued, empty


def test_get_resolves_lazily_and_only_once() -> None:
    spawn = _CountingSpawn()
    store = CellMemoryStore(spawn)

    assert Cell(1, 2) not in store
    first = store.get(Cell(1, 2))
    second = store.get(Cell(1, 2))

    assert first is second
    assert spawn.calls == [Cell(1, 2)]
    assert Cell(1, 2) in store
    assert len(store) == 1


def test_peek_does_not_materialize() -> None:
    store = CellMemoryStore(SpawnTable())
    assert store.peek(Cell(0, 0)) is None
    assert len(store) == 0


def test_mark_collected_is_monotonic_until_reset() -> None:
    spawn = SpawnTable((SpawnBand(0.5, 4),))
    store = CellMemoryStore(spawn)
    valued, _ = _valued_and_empty(spawn)

    state = store.get(valued)
    assert state.has_token

    assert store.mark_collected(valued) is True
    assert store.get(valued).collected is True
    # Value is kept for debugging.
    assert store.get(valued).value == 4
    assert not store.get(valued).has_token

    assert store.mark_collected(valued) is False
    assert store.get(valued).collected is True


def test_mark_collected_is_noop_for_absent_or_valueless_cells() -> None:
    spawn = SpawnTable((SpawnBand(0.5, 4),))
    store = CellMemoryStore(spawn)
    _, empty = _valued_and_empty(spawn)

    assert store.mark_collected(Cell(99, 99)) is False
    assert Cell(99, 99) not in store

    store.get(empty)
    assert store.mark_collected(empty) is False
    assert store.get(empty) == CellState(value=None, collected=False)


def test_reset_restores_original_spawn_values() -> None:
    spawn = SpawnTable()
    store = CellMemoryStore(spawn)
    window = list(neighborhood(Cell(0, 0), 6))

    before = {c: store.get(c).value for c in window}
    for c in window:
        store.mark_collected(c)

    store.reset()
    assert len(store) == 0

    after = {c: store.get(c) for c in window}
    assert {c: s.value for c, s in after.items()} == before
    assert not any(s.collected for s in after.values())


def test_serialize_and_hydrate_preserve_entries_verbatim() -> None:
    store = CellMemoryStore(SpawnTable((SpawnBand(1.0, 8),)))
    store.get(Cell(0, 0))
    store.get(Cell(-2, 5))
    store.mark_collected(Cell(-2, 5))

    blob = store.serialize()
    assert blob == {
        "-2,5": {"value": 8, "collected": True},
        "0,0": {"value": 8, "collected": False},
    }

    restored = CellMemoryStore(SpawnTable())
    restored.hydrate(blob)
    assert restored.peek(Cell(-2, 5)) == CellState(value=8, collected=True)
    assert restored.peek(Cell(0, 0)) == CellState(value=8, collected=False)
    assert restored.serialize() == blob


def test_retain_only_forgets_cells_outside_window() -> None:
    store = CellMemoryStore(SpawnTable((SpawnBand(1.0, 2),)))
    store.get(Cell(0, 0))
    store.mark_collected(Cell(0, 0))
    store.get(Cell(9, 9))

    dropped = store.retain_only([Cell(9, 9)])

    assert dropped == 1
    assert Cell(0, 0) not in store
    assert store.get(Cell(0, 0)).collected is False
