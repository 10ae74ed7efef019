from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class CellDelta:
    di: int
    dj: int

    @property
    def is_zero(self) -> bool:
        return self.di == 0 and self.dj == 0


@dataclass(frozen=True, slots=True, order=True)
class Cell:
    i: int
    j: int

    @property
    def key(self) -> str:
        """Canonical identity used for storage and wire formats."""

        return f"{self.i},{self.j}"

    @classmethod
    def from_key(cls, key: str) -> "Cell":
        raw_i, sep, raw_j = key.partition(",")
        if not sep:
            raise ValueError(f"Invalid cell key: {key!r}")
        return cls(int(raw_i), int(raw_j))

    def offset(self, delta: CellDelta) -> "Cell":
        return Cell(self.i + delta.di, self.j + delta.dj)

    def delta_to(self, other: "Cell") -> CellDelta:
        return CellDelta(other.i - self.i, other.j - self.j)


@dataclass(frozen=True, slots=True)
class CellBounds:
    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> LatLng:
        return LatLng((self.south + self.north) / 2, (self.west + self.east) / 2)

    def contains(self, position: LatLng) -> bool:
        # Half-open at the upper edge so neighbouring cells never overlap.
        return self.south <= position.lat < self.north and self.west <= position.lng < self.east


@dataclass(frozen=True, slots=True)
class CoordinateMapper:
    origin: LatLng
    tile_size: float

    def to_cell(self, position: LatLng) -> Cell:
        return Cell(
            math.floor((position.lat - self.origin.lat) / self.tile_size),
            math.floor((position.lng - self.origin.lng) / self.tile_size),
        )

    def from_cell(self, cell: Cell) -> CellBounds:
        return CellBounds(
            south=self.origin.lat + cell.i * self.tile_size,
            west=self.origin.lng + cell.j * self.tile_size,
            north=self.origin.lat + (cell.i + 1) * self.tile_size,
            east=self.origin.lng + (cell.j + 1) * self.tile_size,
        )


def distance(a: Cell, b: Cell) -> int:
    """Chebyshev distance between two cells."""

    return max(abs(a.i - b.i), abs(a.j - b.j))


def neighborhood(center: Cell, radius: int) -> Iterator[Cell]:
    for di in range(-radius, radius + 1):
        for dj in range(-radius, radius + 1):
            yield Cell(center.i + di, center.j + dj)
