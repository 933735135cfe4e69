"""GameError -> JSON error envelope.

Body: {"error": {"code", "message", "details", "retryable"}}.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.errors import (
    ConcurrentModificationError,
    DomainRuleViolation,
    GameError,
    NotFoundError,
    ValidationError,
)
from src.core.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_FAMILY: tuple[tuple[type[GameError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (DomainRuleViolation, 409),
    (ConcurrentModificationError, 409),
)


def status_for(exc: GameError) -> int:
    for family, status in STATUS_BY_FAMILY:
        if isinstance(exc, family):
            return status
    return 400


def error_body(code: str, message: str, details: dict, retryable: bool = False) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "retryable": retryable,
        }
    }


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        status = status_for(exc)
        if status == 409 and exc.retryable:
            logger.warning("Retryable conflict on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status,
            content=error_body(exc.code, exc.message, exc.details, exc.retryable),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body(
                "INTERNAL_ERROR",
                str(exc) if app.debug else "Internal server error",
                {},
            ),
        )
