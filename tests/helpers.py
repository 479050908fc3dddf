# tests/helpers.py
from datetime import datetime

from fastapi.testclient import TestClient

from app.models.calendar_event import CalendarEvent, calendar_event_participants
from app.models.family import Family, FamilyMember


def auth(token: str) -> dict:
    return {"X-Device-Token": token}


def create_family(
    client: TestClient,
    family_name: str = "The Svenssons",
    member_name: str = "Anna",
) -> dict:
    """
    Register a family through the API and return the creation payload
    (family + first PARENT member with device token).
    """
    resp = client.post(
        "/families",
        json={"family_name": family_name, "member_name": member_name},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def add_member(client: TestClient, token: str, name: str, role: str = "CHILD") -> dict:
    resp = client.post(
        "/families/members",
        json={"name": name, "role": role},
        headers=auth(token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_event(client: TestClient, token: str, **fields) -> dict:
    payload = {
        "title": "Swimming",
        "start_datetime": "2024-01-01T17:00:00",
        "end_datetime": "2024-01-01T18:00:00",
    }
    payload.update(fields)
    resp = client.post("/calendar/events", json=payload, headers=auth(token))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def seed_family(session, *roles: str) -> tuple[Family, list[FamilyMember]]:
    """
    Insert a family with one member per role directly through the session.
    """
    family = Family(name="Seeded family")
    session.add(family)
    await session.flush()

    members = []
    for i, role in enumerate(roles):
        member = FamilyMember(family_id=family.id, name=f"{role.title()} {i}", role=role)
        session.add(member)
        members.append(member)
    await session.commit()
    for member in members:
        await session.refresh(member)
    return family, members


async def seed_event(
    session,
    family_id: int,
    *,
    title: str = "Chore",
    start: datetime = datetime(2024, 1, 1, 7, 0),
    participants: tuple[int, ...] = (),
    **columns,
) -> CalendarEvent:
    columns.setdefault("is_task", True)
    columns.setdefault("xp_points", 10 if columns["is_task"] else None)
    event = CalendarEvent(
        family_id=family_id,
        title=title,
        start_datetime=start,
        **columns,
    )
    session.add(event)
    await session.flush()
    for member_id in participants:
        await session.execute(
            calendar_event_participants.insert().values(event_id=event.id, member_id=member_id)
        )
    await session.commit()
    await session.refresh(event)
    return event
