# app/api/routes/calendar.py
from datetime import date as date_type, datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.device_auth import get_current_member
from app.db.session import get_db
from app.models.family import FamilyMember
from app.schemas.calendar_event import (
    CalendarEventCreate,
    CalendarEventRead,
    CalendarEventUpdate,
    CalendarOccurrenceRead,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    OccurrenceScope,
)
from app.services import calendar_service

router = APIRouter(
    prefix="/calendar",
    tags=["Calendar"],
    responses={401: {"description": "Missing or invalid device token."}},
)


async def _read(db: AsyncSession, event) -> CalendarEventRead:
    participants = await calendar_service.load_participant_ids(db, [event.id])
    return calendar_service.to_read(event, participants.get(event.id, ()))


@router.get(
    "/events",
    response_model=list[CalendarOccurrenceRead],
    summary="List calendar entries in a date/time range",
    description=(
        "Returns single events whose start falls in `[start, end]` plus every "
        "occurrence of the family's recurring events in that range, sorted by "
        "start.\n\n"
        "Cancelled occurrences are omitted; edited occurrences appear as their "
        "standalone replacement event.\n\n"
        "The range is limited per cadence of the recurring events involved: "
        "DAILY 365 days, WEEKLY 730, MONTHLY 1095, YEARLY 3650."
    ),
    responses={
        200: {
            "description": "Calendar entries in the range.",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "id": 3,
                            "family_id": 1,
                            "title": "Swimming",
                            "start_datetime": "2024-01-08T17:00:00",
                            "end_datetime": "2024-01-08T18:00:00",
                            "is_all_day": False,
                            "recurrence": {"type": "WEEKLY", "interval": 1},
                            "participant_ids": [2],
                            "is_task": False,
                            "is_required": True,
                            "occurrence_date": "2024-01-08",
                        }
                    ]
                }
            },
        },
        400: {"description": "Inverted range or range too wide for a recurring event."},
    },
)
async def list_events(
    start: datetime = Query(..., description="Range start (local time).", examples=["2024-01-01T00:00"]),
    end: datetime = Query(..., description="Range end (local time, inclusive).", examples=["2024-01-31T23:59"]),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> list[CalendarOccurrenceRead]:
    try:
        return await calendar_service.list_events(db, member.family_id, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))


@router.post(
    "/events",
    response_model=CalendarEventRead,
    status_code=HTTPStatus.CREATED,
    summary="Create a calendar event",
    description=(
        "Creates a single or recurring event. Set `is_task` to make it show up in "
        "the daily task list; tasks default to 1 XP point and to required.\n\n"
        "A recurrence rule may set `end_date` or `end_count` (or neither for an "
        "open-ended series) but not both."
    ),
    responses={
        201: {"description": "Event created."},
        400: {"description": "Unknown category or participant, or xp_points on a non-task."},
        422: {"description": "Malformed payload, including an invalid recurrence rule."},
    },
)
async def create_event(
    payload: CalendarEventCreate,
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> CalendarEventRead:
    try:
        event = await calendar_service.create_event(db, member.family_id, member.id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    return await _read(db, event)


@router.get(
    "/events/{event_id}",
    response_model=CalendarEventRead,
    summary="Get a calendar event definition",
    responses={404: {"description": "No such event in the caller's family."}},
)
async def get_event(
    event_id: int = Path(..., ge=1),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> CalendarEventRead:
    try:
        event = await calendar_service.get_event(db, event_id, member.family_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    return await _read(db, event)


@router.patch(
    "/events/{event_id}",
    response_model=CalendarEventRead,
    summary="Partially update a calendar event (whole series)",
    description=(
        "Only fields present in the body are changed. Sending `\"recurrence\": null` "
        "turns a series into a single event."
    ),
    responses={
        400: {"description": "Invalid combination of fields."},
        404: {"description": "No such event in the caller's family."},
    },
)
async def update_event(
    payload: CalendarEventUpdate,
    event_id: int = Path(..., ge=1),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> CalendarEventRead:
    try:
        event = await calendar_service.update_event(db, event_id, member.family_id, payload)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    return await _read(db, event)


@router.delete(
    "/events/{event_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Delete a calendar event",
    description="Deletes the event with all its exceptions, completions and replacement events.",
    responses={404: {"description": "No such event in the caller's family."}},
)
async def delete_event(
    event_id: int = Path(..., ge=1),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> Response:
    try:
        await calendar_service.delete_event(db, event_id, member.family_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.patch(
    "/events/{event_id}/occurrences/{occurrence_date}",
    response_model=CalendarEventRead,
    summary="Edit one occurrence, the rest of a series, or the whole series",
    description=(
        "The body is the full new definition.\n\n"
        "- `THIS`: the occurrence is replaced by a standalone event.\n"
        "- `THIS_AND_FOLLOWING`: the series ends the day before and a new series "
        "starts from the body (which must include `recurrence`).\n"
        "- `ALL`: the series itself is updated.\n\n"
        "Returns the event that now represents the occurrence."
    ),
    responses={
        400: {"description": "The date is not an occurrence of the series."},
        404: {"description": "No such event in the caller's family."},
    },
)
async def update_occurrence(
    payload: CalendarEventCreate,
    event_id: int = Path(..., ge=1),
    occurrence_date: date_type = Path(..., examples=["2024-01-15"]),
    scope: OccurrenceScope = Query(default=OccurrenceScope.THIS),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> CalendarEventRead:
    try:
        event = await calendar_service.update_event_with_scope(
            db, event_id, member.family_id, occurrence_date, scope, payload
        )
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    return await _read(db, event)


@router.delete(
    "/events/{event_id}/occurrences/{occurrence_date}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Delete one occurrence, the rest of a series, or the whole series",
    description=(
        "- `THIS`: the occurrence is cancelled (idempotent).\n"
        "- `THIS_AND_FOLLOWING`: the series ends the day before the date.\n"
        "- `ALL`: the whole series is deleted."
    ),
    responses={
        400: {"description": "The date is not an occurrence of the series."},
        404: {"description": "No such event in the caller's family."},
    },
)
async def delete_occurrence(
    event_id: int = Path(..., ge=1),
    occurrence_date: date_type = Path(..., examples=["2024-01-15"]),
    scope: OccurrenceScope = Query(default=OccurrenceScope.THIS),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> Response:
    try:
        await calendar_service.delete_event_with_scope(
            db, event_id, member.family_id, occurrence_date, scope
        )
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    return Response(status_code=HTTPStatus.NO_CONTENT)


# --------------------------------------------------------------------------
# Categories
# --------------------------------------------------------------------------

@router.get(
    "/categories",
    response_model=list[CategoryRead],
    summary="List event categories of the caller's family",
)
async def list_categories(
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> list[CategoryRead]:
    categories = await calendar_service.list_categories(db, member.family_id)
    return [CategoryRead.model_validate(c) for c in categories]


@router.post(
    "/categories",
    response_model=CategoryRead,
    status_code=HTTPStatus.CREATED,
    summary="Create an event category",
    responses={
        201: {
            "description": "Category created.",
            "content": {
                "application/json": {
                    "example": {"id": 1, "family_id": 1, "name": "School", "color": "#b8e6b8"}
                }
            },
        },
        400: {"description": "A category with this name already exists."},
    },
)
async def create_category(
    payload: CategoryCreate,
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> CategoryRead:
    try:
        category = await calendar_service.create_category(db, member.family_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    return CategoryRead.model_validate(category)


@router.patch(
    "/categories/{category_id}",
    response_model=CategoryRead,
    summary="Rename or recolour an event category",
    responses={
        400: {"description": "A category with this name already exists."},
        404: {"description": "No such category in the caller's family."},
    },
)
async def update_category(
    payload: CategoryUpdate,
    category_id: int = Path(..., ge=1),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> CategoryRead:
    try:
        category = await calendar_service.update_category(
            db, category_id, member.family_id, payload
        )
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    return CategoryRead.model_validate(category)


@router.delete(
    "/categories/{category_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Delete an event category",
    description="Events in the category are kept and become uncategorised.",
    responses={404: {"description": "No such category in the caller's family."}},
)
async def delete_category(
    category_id: int = Path(..., ge=1),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> Response:
    try:
        await calendar_service.delete_category(db, category_id, member.family_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    return Response(status_code=HTTPStatus.NO_CONTENT)
