"""Shared test fixtures."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event as sa_event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.cache import TTLCache
from src.core.event_bus import EventBus
from src.core.market.seed import MarketSeed
from src.db.database import get_db
from src.db.models import Base
from src.main import app
from src.services.game_service import GameService
from src.services.market_service import MarketService
from src.services.turn_service import TurnService

SEED_MARKET_PATH = Path("src/data/seed_market.json")


def make_engine():
    """In-memory SQLite shared by every session, foreign keys enforced."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @sa_event.listens_for(engine, "connect")
    def _set_fk(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def market_seed() -> MarketSeed:
    return MarketSeed.load_from_json(SEED_MARKET_PATH)


@pytest.fixture()
def session_factory(market_seed):
    """Session factory over a seeded in-memory DB."""
    engine = make_engine()
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    db = factory()
    GameService(db, EventBus(), market_seed).sync_reference_data()
    db.close()
    yield factory
    engine.dispose()


@pytest.fixture()
def db_session(session_factory) -> Session:
    """Raw database session for direct DB assertions."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def services(db_session, bus, market_seed):
    """(GameService, MarketService, TurnService) on one session."""
    return (
        GameService(db_session, bus, market_seed),
        MarketService(db_session, bus),
        TurnService(db_session, bus),
    )


@pytest.fixture()
def client(session_factory, market_seed) -> TestClient:
    """FastAPI TestClient wired to a seeded in-memory SQLite database."""

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.state.event_bus = EventBus()
    app.state.reference_cache = TTLCache(60.0)
    app.state.market_seed = market_seed
    yield TestClient(app)
    app.dependency_overrides.clear()
