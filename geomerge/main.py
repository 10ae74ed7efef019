from fastapi import FastAPI
import logging
import os

from geomerge.api.routes import router
from geomerge.infra.redis_client import close_shared_redis
from geomerge.service import registry

app = FastAPI(title="geomerge", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=os.environ.get("GEOMERGE_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    # Fail fast on bad GEOMERGE_* overrides instead of on the first session.
    cfg = registry.config
    logger.info(
        "world origin=(%s, %s) tile=%s radius=%d range=%d target=%d policy=%s",
        cfg.origin.lat,
        cfg.origin.lng,
        cfg.tile_size,
        cfg.neighborhood_radius,
        cfg.interaction_range,
        cfg.target_value,
        cfg.cell_policy.value,
    )


@app.on_event("shutdown")
async def _shutdown() -> None:
    registry.close_all()
    close_shared_redis()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "geomerge", "version": "0.1.0"}
