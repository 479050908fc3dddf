# app/api/routes/health.py
from datetime import date, datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(
        ...,
        description="Overall health status of the Family Organizer service.",
        examples=["ok"],
    )
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["Family Organizer"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
        examples=["2025-01-01T10:30:00Z"],
    )
    server_date: date = Field(
        ...,
        description=(
            "Server-local date. Task lists and the monthly rollover default to "
            "this date when none is given."
        ),
        examples=["2025-01-01"],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for the Family Organizer service",
    description=(
        "Lightweight endpoint to verify that the Family Organizer backend is "
        "up and responding.\n\n"
        "Also reports the server-local date, which the mobile clients use to "
        "pick the default day for the task list.\n"
    ),
    responses={
        200: {
            "description": "Service is healthy and responding as expected.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "ok",
                        "app_name": "Family Organizer",
                        "environment": "local",
                        "timestamp_utc": "2025-01-01T10:30:00Z",
                        "server_date": "2025-01-01",
                    }
                }
            },
        }
    },
)
async def health_check() -> HealthResponse:
    """
    Returns the current health status of the service.

    This endpoint is intentionally simple and does **not** depend on external
    systems such as the database, so that it remains reliable even when
    they are degraded.
    """
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        timestamp_utc=datetime.now(tz=timezone.utc),
        server_date=date.today(),
    )