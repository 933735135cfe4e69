"""Database engine and session configuration.

SQLite is the default for local play. Any SQLAlchemy URL works; Postgres
gives real row locks for the `with_for_update()` reads in the repository.
"""

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(url: str, echo: bool = False) -> Engine:
    if not _is_sqlite(url):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    eng = create_engine(
        url,
        connect_args={"check_same_thread": False},  # required for SQLite
        echo=echo,
    )

    @event.listens_for(eng, "connect")
    def _enable_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return eng


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and ensure it is closed after use.

    Usage as a FastAPI dependency::

        @router.post("/games")
        def create_game(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
