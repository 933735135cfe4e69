"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.database import get_db
from src.db.repository import GameRepository

router = APIRouter()


@router.get("/health")
def health_check(db: Session = Depends(get_db)) -> dict[str, str]:
    """Return application, database and market seed status."""
    try:
        seeded = GameRepository(db).has_reference_data()
    except SQLAlchemyError:
        return {"status": "error", "database": "disconnected", "market": "unknown"}
    return {
        "status": "ok",
        "database": "connected",
        "market": "seeded" if seeded else "empty",
    }
