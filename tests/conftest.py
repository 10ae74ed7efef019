from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from geomerge.config import GameConfig
from geomerge.core.grid import LatLng
from geomerge.core.spawn import SpawnBand


@pytest.fixture()
def small_config() -> GameConfig:
    """Example world: origin (0,0), one-degree tiles, range 3, target 32."""

    return GameConfig(origin=LatLng(0.0, 0.0), tile_size=1.0, neighborhood_radius=4, interaction_range=3, target_value=32)


@pytest.fixture()
def uniform_config() -> GameConfig:
    """Every cell spawns a 2; two pickups reach the target of 4."""

    return GameConfig(
        origin=LatLng(0.0, 0.0),
        tile_size=1.0,
        neighborhood_radius=3,
        interaction_range=3,
        target_value=4,
        spawn_bands=(SpawnBand(1.0, 2),),
    )


@pytest.fixture()
def client_and_redis(uniform_config: GameConfig) -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """Shared fixture for tests that need both a FastAPI TestClient and fakeredis.

    Uses a fresh session registry per test, backed by the uniform world.
    """

    from geomerge.api.deps import get_redis, get_registry
    from geomerge.main import app
    from geomerge.service import SessionRegistry

    r = fakeredis.FakeRedis(decode_responses=True)
    registry = SessionRegistry(config=uniform_config)

    def _override_redis() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override_redis
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
    registry.close_all()
