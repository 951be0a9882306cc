"""Создаёт FastAPI-приложение, подключает маршруты и обработку ошибок движка."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    BracketSlotConflict,
    NotFound,
    RatingApplyFailure,
    RegenerationConflict,
    TournamentError,
)
from app.core.logging import setup_logging
from app.routers.api import router as api_router

setup_logging(settings.log_level)

app = FastAPI(title=settings.app_name, debug=settings.debug)


def error_status(exc: TournamentError) -> int:
    # Ошибки вызывающего дают 4xx без повтора; сбой рейтинга дает 503, клиент повторяет с тем же матчем.
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, (RegenerationConflict, BracketSlotConflict)):
        return 409
    if isinstance(exc, RatingApplyFailure):
        return 503
    return 400


@app.exception_handler(TournamentError)
async def tournament_error_handler(request: Request, exc: TournamentError):
    return JSONResponse({"detail": str(exc)}, status_code=error_status(exc))


# Подключаем JSON API движка.
app.include_router(api_router)
