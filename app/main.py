# app/main.py
from fastapi import FastAPI

from app.api.routes import calendar, families, health, internal, tasks, xp
from app.core.config import get_settings
from app.core.logging import setup_logging
from app.db.session import init_db_for_startup


def create_app() -> FastAPI:
    """
    Application factory for the Family Organizer service.
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend for a shared family calendar: recurring events with per-occurrence\n"
            "edits and cancellations, daily task lists materialized from the calendar,\n"
            "per-member completion tracking and a monthly XP ladder for children."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(families.router)
    app.include_router(calendar.router)
    app.include_router(tasks.router)
    app.include_router(xp.router)
    app.include_router(internal.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db_for_startup()

    return app


app = create_app()
