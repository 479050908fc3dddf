# tests/test_calendar_api.py
from http import HTTPStatus

from tests.helpers import add_member, auth, create_event, create_family


def _list(client, token, start="2024-01-01T00:00:00", end="2024-01-31T23:59:59"):
    resp = client.get(
        "/calendar/events",
        params={"start": start, "end": end},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK, resp.text
    return resp.json()


def _weekly_swimming(client, token, **fields):
    return create_event(
        client,
        token,
        recurrence={"type": "WEEKLY", "interval": 1},
        **fields,
    )


def test_calendar_requires_device_token(client):
    resp = client.get(
        "/calendar/events",
        params={"start": "2024-01-01T00:00:00", "end": "2024-01-31T00:00:00"},
    )
    assert resp.status_code == HTTPStatus.UNAUTHORIZED

    resp = client.get("/calendar/categories", headers=auth("not-a-token"))
    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_create_event_applies_task_defaults(client):
    token = create_family(client)["member"]["device_token"]

    task = create_event(client, token, title="Tidy room", is_task=True)
    appointment = create_event(client, token, title="Dentist")

    assert task["is_task"] is True
    assert task["xp_points"] == 1
    assert task["is_required"] is True
    assert appointment["is_task"] is False
    assert appointment["xp_points"] is None


def test_create_event_rejects_xp_on_non_task(client):
    token = create_family(client)["member"]["device_token"]

    resp = client.post(
        "/calendar/events",
        json={"title": "Dentist", "start_datetime": "2024-01-01T10:00:00", "xp_points": 5},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_create_event_rejects_both_end_conditions(client):
    token = create_family(client)["member"]["device_token"]

    resp = client.post(
        "/calendar/events",
        json={
            "title": "Swimming",
            "start_datetime": "2024-01-01T17:00:00",
            "recurrence": {"type": "WEEKLY", "end_date": "2024-06-01", "end_count": 3},
        },
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_create_event_rejects_participant_from_other_family(client):
    token = create_family(client)["member"]["device_token"]
    stranger = create_family(client, "The Others", "Olle")["member"]

    resp = client.post(
        "/calendar/events",
        json={
            "title": "Swimming",
            "start_datetime": "2024-01-01T17:00:00",
            "participant_ids": [stranger["id"]],
        },
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_list_expands_weekly_series_in_january(client):
    created = create_family(client)
    token = created["member"]["device_token"]
    child = add_member(client, token, "Olle")
    series = _weekly_swimming(client, token, participant_ids=[child["id"]])

    entries = _list(client, token)

    assert [e["occurrence_date"] for e in entries] == [
        "2024-01-01",
        "2024-01-08",
        "2024-01-15",
        "2024-01-22",
        "2024-01-29",
    ]
    assert {e["id"] for e in entries} == {series["id"]}
    assert entries[1]["start_datetime"] == "2024-01-08T17:00:00"
    assert entries[1]["end_datetime"] == "2024-01-08T18:00:00"
    assert entries[0]["participant_ids"] == [child["id"]]


def test_list_mixes_single_events_sorted_by_start(client):
    token = create_family(client)["member"]["device_token"]
    _weekly_swimming(client, token)
    single = create_event(
        client,
        token,
        title="Dentist",
        start_datetime="2024-01-10T09:00:00",
        end_datetime="2024-01-10T09:30:00",
    )

    entries = _list(client, token)

    assert [e["title"] for e in entries][:3] == ["Swimming", "Swimming", "Dentist"]
    assert entries[2]["id"] == single["id"]
    assert entries[2]["occurrence_date"] == "2024-01-10"


def test_list_is_scoped_to_family(client):
    token = create_family(client)["member"]["device_token"]
    other_token = create_family(client, "The Others", "Olle")["member"]["device_token"]
    _weekly_swimming(client, token)

    assert _list(client, other_token) == []


def test_list_rejects_window_too_wide_for_daily_series(client):
    token = create_family(client)["member"]["device_token"]
    create_event(client, token, recurrence={"type": "DAILY"})

    resp = client.get(
        "/calendar/events",
        params={"start": "2024-01-01T00:00:00", "end": "2025-06-01T00:00:00"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "Maximum is 365 days" in resp.json()["detail"]


def test_list_rejects_inverted_window(client):
    token = create_family(client)["member"]["device_token"]

    resp = client.get(
        "/calendar/events",
        params={"start": "2024-02-01T00:00:00", "end": "2024-01-01T00:00:00"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_list_rejects_window_with_timezone_offset(client):
    token = create_family(client)["member"]["device_token"]
    _weekly_swimming(client, token)

    resp = client.get(
        "/calendar/events",
        params={"start": "2023-12-01T00:00:00Z", "end": "2024-01-31T00:00:00Z"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "timezone" in resp.json()["detail"]


def test_event_datetimes_with_timezone_offset_are_rejected(client):
    token = create_family(client)["member"]["device_token"]

    resp = client.post(
        "/calendar/events",
        json={"title": "Swimming", "start_datetime": "2024-01-01T10:00:00+02:00"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY

    event = create_event(client, token)
    resp = client.patch(
        f"/calendar/events/{event['id']}",
        json={"end_datetime": "2024-01-01T19:00:00Z"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert client.get(f"/calendar/events/{event['id']}", headers=auth(token)).json()["end_datetime"] == (
        "2024-01-01T18:00:00"
    )


def test_patch_event_updates_only_given_fields_and_can_clear_rule(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token, location="Pool")

    resp = client.patch(
        f"/calendar/events/{series['id']}",
        json={"title": "Swimming lesson"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["title"] == "Swimming lesson"
    assert data["location"] == "Pool"
    assert data["recurrence"]["type"] == "WEEKLY"

    resp = client.patch(
        f"/calendar/events/{series['id']}",
        json={"recurrence": None},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["recurrence"] is None
    assert len(_list(client, token)) == 1


def test_get_event_of_other_family_is_not_found(client):
    token = create_family(client)["member"]["device_token"]
    other_token = create_family(client, "The Others", "Olle")["member"]["device_token"]
    series = _weekly_swimming(client, token)

    resp = client.get(f"/calendar/events/{series['id']}", headers=auth(other_token))
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_delete_single_occurrence_is_idempotent(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)

    for _ in range(2):
        resp = client.delete(
            f"/calendar/events/{series['id']}/occurrences/2024-01-15",
            params={"scope": "THIS"},
            headers=auth(token),
        )
        assert resp.status_code == HTTPStatus.NO_CONTENT

    dates = [e["occurrence_date"] for e in _list(client, token)]
    assert dates == ["2024-01-01", "2024-01-08", "2024-01-22", "2024-01-29"]


def test_delete_occurrence_on_non_generated_date_is_rejected(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)

    resp = client.delete(
        f"/calendar/events/{series['id']}/occurrences/2024-01-16",
        params={"scope": "THIS"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_delete_this_and_following_ends_series(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)

    resp = client.delete(
        f"/calendar/events/{series['id']}/occurrences/2024-01-22",
        params={"scope": "THIS_AND_FOLLOWING"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.NO_CONTENT

    dates = [e["occurrence_date"] for e in _list(client, token)]
    assert dates == ["2024-01-01", "2024-01-08", "2024-01-15"]

    event = client.get(f"/calendar/events/{series['id']}", headers=auth(token)).json()
    assert event["recurrence"]["end_date"] == "2024-01-21"


def test_widening_a_split_series_does_not_revive_old_rows(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token, is_task=True)
    headers = auth(token)

    client.delete(
        f"/calendar/events/{series['id']}/occurrences/2024-01-22",
        params={"scope": "THIS"},
        headers=headers,
    )
    client.patch(
        f"/calendar/events/{series['id']}/occurrences/2024-01-29",
        params={"scope": "THIS"},
        json={"title": "Swimming (moved)", "start_datetime": "2024-01-30T18:00:00"},
        headers=headers,
    )
    client.post(f"/tasks/{series['id']}/toggle", params={"date": "2024-01-15"}, headers=headers)

    resp = client.delete(
        f"/calendar/events/{series['id']}/occurrences/2024-01-15",
        params={"scope": "THIS_AND_FOLLOWING"},
        headers=headers,
    )
    assert resp.status_code == HTTPStatus.NO_CONTENT

    resp = client.patch(
        f"/calendar/events/{series['id']}",
        json={"recurrence": {"type": "WEEKLY", "interval": 1}},
        headers=headers,
    )
    assert resp.status_code == HTTPStatus.OK

    entries = _list(client, token)
    assert [(e["occurrence_date"], e["title"]) for e in entries] == [
        ("2024-01-01", "Swimming"),
        ("2024-01-08", "Swimming"),
        ("2024-01-15", "Swimming"),
        ("2024-01-22", "Swimming"),
        ("2024-01-29", "Swimming"),
    ]
    tasks = client.get("/tasks", params={"date": "2024-01-15"}, headers=headers).json()
    assert [t["completed"] for t in tasks] == [False]


def test_delete_all_removes_series(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)

    resp = client.delete(
        f"/calendar/events/{series['id']}/occurrences/2024-01-15",
        params={"scope": "ALL"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.NO_CONTENT
    assert _list(client, token) == []

    resp = client.get(f"/calendar/events/{series['id']}", headers=auth(token))
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_edit_single_occurrence_creates_replacement(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)

    resp = client.patch(
        f"/calendar/events/{series['id']}/occurrences/2024-01-15",
        params={"scope": "THIS"},
        json={
            "title": "Swimming (moved)",
            "start_datetime": "2024-01-16T18:00:00",
            "end_datetime": "2024-01-16T19:00:00",
        },
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK
    replacement = resp.json()
    assert replacement["id"] != series["id"]
    assert replacement["recurrence"] is None

    entries = _list(client, token)
    assert [(e["occurrence_date"], e["title"]) for e in entries] == [
        ("2024-01-01", "Swimming"),
        ("2024-01-08", "Swimming"),
        ("2024-01-16", "Swimming (moved)"),
        ("2024-01-22", "Swimming"),
        ("2024-01-29", "Swimming"),
    ]

    # Editing the same occurrence again replaces the previous replacement.
    resp = client.patch(
        f"/calendar/events/{series['id']}/occurrences/2024-01-15",
        params={"scope": "THIS"},
        json={"title": "Swimming (moved again)", "start_datetime": "2024-01-17T18:00:00"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK
    titles = [e["title"] for e in _list(client, token)]
    assert "Swimming (moved)" not in titles
    assert "Swimming (moved again)" in titles

    resp = client.get(f"/calendar/events/{replacement['id']}", headers=auth(token))
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_deleting_replacement_keeps_original_occurrence_cancelled(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)
    replacement = client.patch(
        f"/calendar/events/{series['id']}/occurrences/2024-01-15",
        params={"scope": "THIS"},
        json={"title": "Swimming (moved)", "start_datetime": "2024-01-16T18:00:00"},
        headers=auth(token),
    ).json()

    resp = client.delete(f"/calendar/events/{replacement['id']}", headers=auth(token))
    assert resp.status_code == HTTPStatus.NO_CONTENT

    dates = [e["occurrence_date"] for e in _list(client, token)]
    assert "2024-01-15" not in dates
    assert "2024-01-16" not in dates


def test_edit_this_and_following_splits_series(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)

    resp = client.patch(
        f"/calendar/events/{series['id']}/occurrences/2024-01-15",
        params={"scope": "THIS_AND_FOLLOWING"},
        json={
            "title": "Swimming (evening)",
            "start_datetime": "2024-01-15T19:00:00",
            "recurrence": {"type": "WEEKLY", "interval": 1},
        },
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK
    new_series = resp.json()
    assert new_series["id"] != series["id"]

    entries = _list(client, token)
    assert [(e["occurrence_date"], e["title"]) for e in entries] == [
        ("2024-01-01", "Swimming"),
        ("2024-01-08", "Swimming"),
        ("2024-01-15", "Swimming (evening)"),
        ("2024-01-22", "Swimming (evening)"),
        ("2024-01-29", "Swimming (evening)"),
    ]


def test_edit_all_updates_series_in_place(client):
    token = create_family(client)["member"]["device_token"]
    series = _weekly_swimming(client, token)

    resp = client.patch(
        f"/calendar/events/{series['id']}/occurrences/2024-01-15",
        params={"scope": "ALL"},
        json={
            "title": "Swim club",
            "start_datetime": "2024-01-01T16:00:00",
            "recurrence": {"type": "WEEKLY", "interval": 2},
        },
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["id"] == series["id"]

    dates = [e["occurrence_date"] for e in _list(client, token)]
    assert dates == ["2024-01-01", "2024-01-15", "2024-01-29"]


def test_category_crud(client):
    token = create_family(client)["member"]["device_token"]

    resp = client.post("/calendar/categories", json={"name": "School"}, headers=auth(token))
    assert resp.status_code == HTTPStatus.CREATED
    category = resp.json()
    assert category["color"] == "#b8e6b8"

    dup = client.post("/calendar/categories", json={"name": "School"}, headers=auth(token))
    assert dup.status_code == HTTPStatus.BAD_REQUEST
    assert "already exists" in dup.json()["detail"]

    event = create_event(client, token, title="Parents' evening", category_id=category["id"])

    resp = client.patch(
        f"/calendar/categories/{category['id']}",
        json={"color": "#ffcc00"},
        headers=auth(token),
    )
    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["color"] == "#ffcc00"

    resp = client.delete(f"/calendar/categories/{category['id']}", headers=auth(token))
    assert resp.status_code == HTTPStatus.NO_CONTENT

    assert client.get("/calendar/categories", headers=auth(token)).json() == []
    kept = client.get(f"/calendar/events/{event['id']}", headers=auth(token)).json()
    assert kept["category_id"] is None
