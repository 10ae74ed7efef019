from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from geomerge.core.grid import Cell
from geomerge.core.luck import luck


@dataclass(frozen=True, slots=True)
class SpawnBand:
    """Cumulative probability band: rolls below `threshold` (and above the previous band) spawn `value`."""

    threshold: float
    value: int


DEFAULT_SPAWN_BANDS: tuple[SpawnBand, ...] = (
    SpawnBand(0.10, 1),
    SpawnBand(0.18, 2),
    SpawnBand(0.22, 4),
    SpawnBand(0.24, 8),
    SpawnBand(0.245, 16),
)

DEFAULT_SPAWN_SALT = "spawn"


def is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


def validate_bands(bands: Sequence[SpawnBand]) -> tuple[SpawnBand, ...]:
    previous = 0.0
    for band in bands:
        if not previous < band.threshold <= 1.0:
            raise ValueError("Spawn band thresholds must be strictly increasing and within (0, 1]")
        if not is_power_of_two(band.value):
            raise ValueError(f"Spawn band value must be a positive power of two (got {band.value})")
        previous = band.threshold
    return tuple(bands)


class SpawnTable:
    """Pure mapping from a cell to its initial token value (or None).

    Depends only on the cell coordinate, the band table and the salt, so every
    process that shares the configuration sees the same world.
    """

    def __init__(self, bands: Sequence[SpawnBand] = DEFAULT_SPAWN_BANDS, *, salt: str = DEFAULT_SPAWN_SALT) -> None:
        self.bands = validate_bands(bands)
        self.salt = salt

    def roll(self, cell: Cell) -> float:
        return luck(f"{cell.i},{cell.j},{self.salt}")

    def value_for(self, cell: Cell) -> int | None:
        r = self.roll(cell)
        for band in self.bands:
            if r < band.threshold:
                return band.value
        return None
