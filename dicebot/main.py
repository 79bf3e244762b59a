import logging

from fastapi import FastAPI

from dicebot.api.deps import get_settings, get_store
from dicebot.api.routes import router
from dicebot.sweeper import StaleSessionSweeper

app = FastAPI(title="dicebot", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

_sweeper: StaleSessionSweeper | None = None


@app.on_event("startup")
async def _startup() -> None:
    global _sweeper

    settings = get_settings()
    # Redis expires idle sessions itself; only the memory store needs sweeping.
    if settings.store_backend == "memory" and settings.sweep_interval_seconds > 0:
        _sweeper = StaleSessionSweeper(get_store(), interval_seconds=settings.sweep_interval_seconds)
        _sweeper.start()
        logger.info("Stale session sweeper running every %ss", settings.sweep_interval_seconds)


@app.on_event("shutdown")
async def _shutdown() -> None:
    global _sweeper

    if _sweeper is not None:
        await _sweeper.stop()
        _sweeper = None


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "dicebot", "version": "0.1.0"}
