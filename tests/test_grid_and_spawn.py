from __future__ import annotations

from collections import Counter

import pytest

from geomerge.config import CLASSROOM
from geomerge.core.grid import Cell, CellDelta, CoordinateMapper, LatLng, distance, neighborhood
from geomerge.core.luck import luck
from geomerge.core.spawn import DEFAULT_SPAWN_BANDS, SpawnBand, SpawnTable


def test_to_cell_floors_each_axis_independently() -> None:
    mapper = CoordinateMapper(origin=LatLng(0.0, 0.0), tile_size=1.0)

    assert mapper.to_cell(LatLng(0.0, 0.0)) == Cell(0, 0)
    assert mapper.to_cell(LatLng(0.99, 2.5)) == Cell(0, 2)
    assert mapper.to_cell(LatLng(-0.5, 2.3)) == Cell(-1, 2)
    assert mapper.to_cell(LatLng(-1.0, -0.01)) == Cell(-1, -1)


def test_from_cell_bounds_contain_every_position_mapped_to_that_cell() -> None:
    # Binary-exact origin/tile/positions keep the arithmetic exact, including tile edges.
    mapper = CoordinateMapper(origin=LatLng(0.25, -1.5), tile_size=0.5)

    steps = [k * 0.125 for k in range(-24, 25)]
    for lat in steps:
        for lng in steps:
            p = LatLng(lat, lng)
            cell = mapper.to_cell(p)
            assert mapper.from_cell(cell).contains(p)
            # ...and no neighbour claims it.
            for other in neighborhood(cell, 1):
                if other != cell:
                    assert not mapper.from_cell(other).contains(p)


def test_bounds_are_half_open_at_upper_edge() -> None:
    mapper = CoordinateMapper(origin=LatLng(0.0, 0.0), tile_size=1.0)
    bounds = mapper.from_cell(Cell(2, 3))

    assert (bounds.south, bounds.west, bounds.north, bounds.east) == (2.0, 3.0, 3.0, 4.0)
    assert bounds.contains(LatLng(2.0, 3.0))
    assert not bounds.contains(LatLng(3.0, 3.5))
    assert not bounds.contains(LatLng(2.5, 4.0))


def test_classroom_cell_centers_map_back_to_their_cell() -> None:
    mapper = CoordinateMapper(origin=CLASSROOM, tile_size=0.0001)

    assert mapper.to_cell(CLASSROOM) == Cell(0, 0)
    for cell in neighborhood(Cell(0, 0), 5):
        assert mapper.to_cell(mapper.from_cell(cell).center) == cell


def test_distance_is_chebyshev() -> None:
    assert distance(Cell(0, 0), Cell(0, 0)) == 0
    assert distance(Cell(0, 0), Cell(1, 1)) == 1
    assert distance(Cell(0, 0), Cell(-3, 2)) == 3
    assert distance(Cell(5, -2), Cell(1, -1)) == 4


def test_cell_key_offsets_and_deltas() -> None:
    assert Cell(-3, 7).key == "-3,7"
    assert Cell.from_key("-3,7") == Cell(-3, 7)
    assert Cell(1, 1).offset(CellDelta(2, -1)) == Cell(3, 0)
    assert Cell(1, 1).delta_to(Cell(1, 1)).is_zero
    assert Cell(1, 1).delta_to(Cell(0, 4)) == CellDelta(-1, 3)

    with pytest.raises(ValueError):
        Cell.from_key("12")


def test_neighborhood_is_square_window() -> None:
    window = list(neighborhood(Cell(10, -10), 2))
    assert len(window) == 25
    assert len(set(window)) == 25
    assert all(distance(Cell(10, -10), c) <= 2 for c in window)


def test_luck_is_stable_and_in_unit_interval() -> None:
    values = [luck(f"{i},{j},spawn") for i in range(-20, 20) for j in range(-20, 20)]

    assert all(0.0 <= v < 1.0 for v in values)
    assert values == [luck(f"{i},{j},spawn") for i in range(-20, 20) for j in range(-20, 20)]
    assert len(set(values)) == len(values)


def test_spawn_value_is_pure_function_of_cell() -> None:
    a = SpawnTable()
    b = SpawnTable()

    for cell in neighborhood(Cell(0, 0), 15):
        assert a.value_for(cell) == a.value_for(cell) == b.value_for(cell)


def test_spawn_salt_changes_the_world() -> None:
    a = SpawnTable(salt="spawn")
    b = SpawnTable(salt="other")

    cells = list(neighborhood(Cell(0, 0), 15))
    assert [a.value_for(c) for c in cells] != [b.value_for(c) for c in cells]


def test_spawn_distribution_follows_bands() -> None:
    table = SpawnTable()
    counts = Counter(table.value_for(Cell(i, j)) for i in range(-100, 100) for j in range(-50, 50))
    total = sum(counts.values())

    assert set(counts) <= {None, 1, 2, 4, 8, 16}
    assert counts[1] / total == pytest.approx(0.10, abs=0.015)
    assert counts[2] / total == pytest.approx(0.08, abs=0.015)
    assert counts[4] / total == pytest.approx(0.04, abs=0.01)
    assert counts[None] / total == pytest.approx(0.755, abs=0.02)


def test_spawn_value_respects_band_order() -> None:
    table = SpawnTable()
    for i in range(-30, 30):
        cell = Cell(i, 7)
        r = table.roll(cell)
        expected = next((b.value for b in DEFAULT_SPAWN_BANDS if r < b.threshold), None)
        assert table.value_for(cell) == expected


@pytest.mark.parametrize(
    "bands",
    [
        (SpawnBand(0.2, 1), SpawnBand(0.1, 2)),
        (SpawnBand(0.1, 1), SpawnBand(0.1, 2)),
        (SpawnBand(1.5, 1),),
        (SpawnBand(0.0, 1),),
        (SpawnBand(0.5, 3),),
        (SpawnBand(0.5, 0),),
    ],
)
def test_invalid_spawn_bands_rejected(bands: tuple[SpawnBand, ...]) -> None:
    with pytest.raises(ValueError):
        SpawnTable(bands)
