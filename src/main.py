"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.api.errors import register_error_handlers
from src.api.games import router as games_router
from src.api.health import router as health_router
from src.config import settings
from src.core.cache import TTLCache
from src.core.event_bus import EventBus
from src.core.logging import get_logger, setup_logging
from src.core.market.seed import MarketSeed
from src.db.database import SessionLocal, engine as db_engine
from src.db.models import Base
from src.services.game_service import GameService

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database tables created.")

    # push notifiers (websocket fan-out etc.) subscribe to this bus here
    event_bus = EventBus()
    reference_cache = TTLCache(settings.REFERENCE_CACHE_TTL_SECONDS)
    market_seed = MarketSeed.load_from_json(settings.SEED_DATA_PATH)

    app.state.event_bus = event_bus
    app.state.reference_cache = reference_cache
    app.state.market_seed = market_seed

    db_session = SessionLocal()
    try:
        synced = GameService(
            db_session, event_bus, market_seed, reference_cache
        ).sync_reference_data()
        logger.info("Market reference data synced (%d new rows).", synced)
    finally:
        db_session.close()

    yield

    logger.info("Shutting down...")
    event_bus.clear()
    reference_cache.clear()


app = FastAPI(title="NYC Vinyl Trader", debug=settings.DEBUG, lifespan=lifespan)

register_error_handlers(app)
app.include_router(health_router)
app.include_router(games_router)
