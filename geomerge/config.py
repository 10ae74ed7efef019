from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from geomerge.core.cell_memory import CellPolicy
from geomerge.core.grid import CoordinateMapper, LatLng
from geomerge.core.movement import MovementKind
from geomerge.core.spawn import (
    DEFAULT_SPAWN_BANDS,
    DEFAULT_SPAWN_SALT,
    SpawnBand,
    SpawnTable,
    is_power_of_two,
    validate_bands,
)

# Where the game was first played.
CLASSROOM = LatLng(36.997936938057016, -122.05703507501151)

ENV_PREFIX = "GEOMERGE_"


class GameConfig(BaseModel):
    """Game-wide constants, fixed for the lifetime of the process."""

    model_config = ConfigDict(frozen=True)

    origin: LatLng = CLASSROOM
    # Degrees per cell; 0.0001 is about one house.
    tile_size: float = Field(0.0001, gt=0)
    neighborhood_radius: int = Field(10, ge=0)
    interaction_range: int = Field(3, ge=0)
    target_value: int = Field(32, gt=0)
    spawn_bands: tuple[SpawnBand, ...] = DEFAULT_SPAWN_BANDS
    spawn_salt: str = DEFAULT_SPAWN_SALT
    cell_policy: CellPolicy = CellPolicy.memoryful
    initial_movement: MovementKind = MovementKind.buttons

    @model_validator(mode="after")
    def _check_consistency(self) -> "GameConfig":
        if self.interaction_range > self.neighborhood_radius:
            raise ValueError("interaction_range must not exceed neighborhood_radius")
        if not is_power_of_two(self.target_value):
            raise ValueError("target_value must be a power of two")
        validate_bands(self.spawn_bands)
        return self

    def mapper(self) -> CoordinateMapper:
        return CoordinateMapper(origin=self.origin, tile_size=self.tile_size)

    def spawn_table(self) -> SpawnTable:
        return SpawnTable(self.spawn_bands, salt=self.spawn_salt)


_ENV_FIELDS: dict[str, str] = {
    "TILE_SIZE": "tile_size",
    "NEIGHBORHOOD_RADIUS": "neighborhood_radius",
    "INTERACTION_RANGE": "interaction_range",
    "TARGET_VALUE": "target_value",
    "SPAWN_SALT": "spawn_salt",
    "CELL_POLICY": "cell_policy",
    "INITIAL_MOVEMENT": "initial_movement",
}


def load_config(env: Mapping[str, str] | None = None) -> GameConfig:
    """Build the config from defaults plus optional `GEOMERGE_*` overrides.

    e.g. GEOMERGE_TARGET_VALUE=64 GEOMERGE_CELL_POLICY=memoryless
    """

    env = os.environ if env is None else env
    data: dict[str, Any] = {}

    for suffix, field_name in _ENV_FIELDS.items():
        raw = env.get(f"{ENV_PREFIX}{suffix}")
        if raw:
            data[field_name] = raw

    lat = env.get(f"{ENV_PREFIX}ORIGIN_LAT")
    lng = env.get(f"{ENV_PREFIX}ORIGIN_LNG")
    if lat or lng:
        if not (lat and lng):
            raise ValueError(f"{ENV_PREFIX}ORIGIN_LAT and {ENV_PREFIX}ORIGIN_LNG must be set together")
        data["origin"] = {"lat": float(lat), "lng": float(lng)}

    return GameConfig.model_validate(data)
