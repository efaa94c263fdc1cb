"""FastAPI server for the Ride the Bus drinking game."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import redis.asyncio as redis

from config import config
from logging_config import setup_logging
from services.game_service import GameService
from services.sync import SyncBroadcaster
from stores.pubsub import LobbyPubSub
from stores.state_store import StateStore

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Services (initialized in lifespan)
# =============================================================================

_redis_client: Optional[redis.Redis] = None
_pubsub: Optional[LobbyPubSub] = None
_game_service: Optional[GameService] = None


async def _init_services():
    """Connect Redis and wire the store, pub/sub and game service together."""
    global _redis_client, _pubsub, _game_service

    _redis_client = redis.from_url(config.REDIS_URL, decode_responses=False)
    await _redis_client.ping()
    logger.info("Redis client connected")

    store = StateStore(_redis_client)
    # Publish only; replicas subscribe from their own processes.
    _pubsub = LobbyPubSub(_redis_client, server_id=config.SERVER_ID)

    _game_service = GameService(store, broadcaster=SyncBroadcaster(_pubsub))

    from routers.lobbies import set_game_service
    from routers.health import set_health_dependencies
    set_game_service(_game_service)
    set_health_dependencies(redis_client=_redis_client)


async def _shutdown_services():
    """Gracefully shut down all services."""
    global _redis_client, _pubsub, _game_service

    from routers.lobbies import set_game_service
    set_game_service(None)

    if _game_service:
        await _game_service.shutdown()
        _game_service = None
        logger.info("Bot tasks cancelled")

    if _pubsub:
        await _pubsub.stop()
        _pubsub = None

    if _redis_client:
        await _redis_client.close()
        _redis_client = None
        logger.info("Redis connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    try:
        await _init_services()
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        raise

    logger.info(f"Ride the Bus server started (environment={config.ENVIRONMENT}, server_id={config.SERVER_ID})")

    yield

    logger.info("Shutdown initiated...")
    await _shutdown_services()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Ride the Bus",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

from routers.lobbies import router as lobbies_router
from routers.health import router as health_router
app.include_router(lobbies_router)
app.include_router(health_router)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Ride the Bus server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
