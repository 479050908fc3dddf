# app/api/routes/tasks.py
from datetime import date as date_type
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.device_auth import get_current_member
from app.api.dependencies.xp_ledger import get_xp_ledger
from app.db.session import get_db
from app.models.family import FamilyMember
from app.schemas.family import MemberRole
from app.schemas.task import MemberTask, MemberTaskList, ToggleResult
from app.services import family_directory, task_materializer
from app.services.task_materializer import CompletionConflict
from app.services.xp_ledger import XpLedger

router = APIRouter(
    prefix="/tasks",
    tags=["Tasks"],
    responses={401: {"description": "Missing or invalid device token."}},
)


@router.get(
    "",
    response_model=list[MemberTask],
    summary="Tasks of the caller for one day",
    description=(
        "Materializes the caller's task occurrences for `date` (defaults to "
        "today): task events assigned to the caller or to the whole family, "
        "minus cancelled occurrences.\n\n"
        "Required tasks come first, then tasks are ordered by title."
    ),
    responses={
        200: {
            "description": "Task list for the day.",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "event_id": 12,
                            "title": "Empty the dishwasher",
                            "occurrence_date": "2024-01-15",
                            "start_datetime": "2024-01-15T07:00:00",
                            "is_required": True,
                            "xp_points": 5,
                            "completed": False,
                        }
                    ]
                }
            },
        }
    },
)
async def my_tasks(
    day: date_type | None = Query(
        default=None,
        alias="date",
        description="Day to list tasks for. Defaults to the server's current date.",
        examples=["2024-01-15"],
    ),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> list[MemberTask]:
    if day is None:
        day = date_type.today()
    return await task_materializer.tasks_for_member(db, member.id, day)


@router.get(
    "/family",
    response_model=list[MemberTaskList],
    summary="Tasks of every family member for one day",
)
async def family_tasks(
    day: date_type | None = Query(default=None, alias="date", examples=["2024-01-15"]),
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> list[MemberTaskList]:
    if day is None:
        day = date_type.today()
    return await task_materializer.tasks_for_family(db, member.family_id, day)


@router.post(
    "/{event_id}/toggle",
    response_model=ToggleResult,
    summary="Mark a task occurrence done, or undo it",
    description=(
        "Flips the completion state of one task occurrence for one member and "
        "awards or retracts the task's XP points for children.\n\n"
        "`member_id` defaults to the caller. Children may only toggle their own "
        "tasks."
    ),
    responses={
        400: {"description": "Not a task, not assigned to the member, or no occurrence on that date."},
        403: {"description": "A child tried to toggle another member's task."},
        404: {"description": "Unknown event or member in the caller's family."},
        409: {"description": "Concurrent toggle of the same occurrence; retry."},
    },
)
async def toggle_task(
    event_id: int = Path(..., ge=1),
    day: date_type = Query(..., alias="date", examples=["2024-01-15"]),
    member_id: int | None = Query(default=None, ge=1),
    member: FamilyMember = Depends(get_current_member),
    ledger: XpLedger = Depends(get_xp_ledger),
    db: AsyncSession = Depends(get_db),
) -> ToggleResult:
    target_id = member.id if member_id is None else member_id

    if target_id != member.id:
        if member.role == MemberRole.CHILD.value:
            raise HTTPException(
                status_code=HTTPStatus.FORBIDDEN,
                detail="Children can only toggle their own tasks.",
            )
        try:
            target = await family_directory.get_member(db, target_id)
        except LookupError as exc:
            raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
        if target.family_id != member.family_id:
            raise HTTPException(
                status_code=HTTPStatus.NOT_FOUND,
                detail=f"Family member with id={target_id} not found",
            )

    try:
        return await task_materializer.toggle_completion(
            db, event_id, target_id, day, listener=ledger
        )
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except CompletionConflict as exc:
        raise HTTPException(status_code=HTTPStatus.CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
