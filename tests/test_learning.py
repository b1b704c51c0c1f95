import pytest
from sqlmodel import select

from conftest import auth_headers, approve_and_launch, open_arrangement
from lms.models.progress import StudentProgress


@pytest.mark.asyncio
async def test_content_hidden_until_launch(client, campus):
    student = auth_headers(campus.student)

    res = await client.get("/api/learning/courses", headers=student)
    assert res.json() == []

    res = await client.get(f"/api/learning/courses/{campus.course.id}", headers=student)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_launched_course_content_follows_arrangement(client, campus):
    await approve_and_launch(client, campus)
    student = auth_headers(campus.student)

    res = await client.get("/api/learning/courses", headers=student)
    assert [c["code"] for c in res.json()] == ["CS101"]

    res = await client.get(f"/api/learning/courses/{campus.course.id}", headers=student)
    assert res.status_code == 200
    body = res.json()
    assert body["arrangement_version"] == 1
    unit1 = body["units"][0]
    assert [i["title"] for i in unit1["items"]] == ["Intro", "Variables", "Notes 1"]
    assert unit1["items"][0]["status"] is None


@pytest.mark.asyncio
async def test_student_outside_section_is_forbidden(client, campus):
    await approve_and_launch(client, campus)
    res = await client.get(f"/api/learning/courses/{campus.course.id}", headers=auth_headers(campus.student2))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_video_completes_at_ninety_percent(client, campus):
    await approve_and_launch(client, campus)
    student = auth_headers(campus.student)

    payload = {"content_type": "video", "content_id": str(campus.v1.id), "watched_seconds": 50}
    res = await client.post("/api/learning/progress", json=payload, headers=student)
    assert res.status_code == 200
    assert res.json()["status"] == "in_progress"
    assert res.json()["arrangement_version"] == 1

    # watch position never goes backwards
    res = await client.post("/api/learning/progress", json=dict(payload, watched_seconds=10), headers=student)
    assert res.json()["watched_seconds"] == 50

    res = await client.post("/api/learning/progress", json=dict(payload, watched_seconds=90), headers=student)
    assert res.json()["status"] == "completed"
    assert res.json()["completed_at"] is not None


@pytest.mark.asyncio
async def test_document_completes_on_open_and_progress_totals(client, campus):
    await approve_and_launch(client, campus)
    student = auth_headers(campus.student)

    res = await client.post(
        "/api/learning/progress",
        json={"content_type": "document", "content_id": str(campus.d1.id)},
        headers=student,
    )
    assert res.json()["status"] == "completed"

    res = await client.post(
        "/api/learning/progress",
        json={"content_type": "video", "content_id": str(campus.v1.id), "completed": True},
        headers=student,
    )
    assert res.json()["status"] == "completed"

    res = await client.get(f"/api/learning/courses/{campus.course.id}/progress", headers=student)
    assert res.json() == {
        "course_id": str(campus.course.id),
        "completed_items": 2,
        "total_items": 5,
        "completion_percent": 40.0,
    }


@pytest.mark.asyncio
async def test_content_added_after_launch_is_not_trackable(client, campus):
    await approve_and_launch(client, campus)

    res = await client.post(
        f"/api/units/{campus.unit1.id}/videos", json={"title": "Bonus", "duration": 30}, headers=auth_headers(campus.cc)
    )
    bonus = res.json()["id"]

    res = await client.post(
        "/api/learning/progress",
        json={"content_type": "video", "content_id": bonus, "completed": True},
        headers=auth_headers(campus.student),
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_mark_content_updated_flags_unit_progress(client, campus, db_session):
    await approve_and_launch(client, campus)
    await client.post(
        "/api/learning/progress",
        json={"content_type": "document", "content_id": str(campus.d1.id)},
        headers=auth_headers(campus.student),
    )

    url = f"/api/content-arrangement/course/{campus.course.id}/mark-updated"

    res = await client.post(url, json={}, headers=auth_headers(campus.cc))
    assert res.status_code == 200
    assert res.json()["students_affected"] == 1
    assert res.json()["course"]["is_launched"] is True

    res = await client.post(url, json={"unit_id": str(campus.unit2.id)}, headers=auth_headers(campus.cc))
    assert res.json()["students_affected"] == 0

    res = await client.post(url, json={"unit_id": str(campus.unit1.id)}, headers=auth_headers(campus.cc))
    assert res.json()["students_affected"] == 1

    rows = (await db_session.execute(
        select(StudentProgress).where(StudentProgress.student_id == campus.student.id)
    )).scalars().all()
    assert [r.status.value for r in rows] == ["needs_review"]

    res = await client.get(f"/api/courses/{campus.course.id}", headers=auth_headers(campus.cc))
    assert res.json()["current_arrangement_status"] == "pending_relaunch"
    assert res.json()["has_new_content"] is True


@pytest.mark.asyncio
async def test_mark_content_updated_rejects_foreign_unit_and_outsiders(client, campus):
    url = f"/api/content-arrangement/course/{campus.course.id}/mark-updated"

    res = await client.post(
        url, json={"unit_id": "00000000-0000-0000-0000-000000000001"}, headers=auth_headers(campus.cc)
    )
    assert res.status_code == 404

    res = await client.post(url, json={}, headers=auth_headers(campus.outsider))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_relaunch_keeps_progress_on_new_version(client, campus, db_session):
    await approve_and_launch(client, campus)
    await client.post(
        "/api/learning/progress",
        json={"content_type": "document", "content_id": str(campus.d1.id)},
        headers=auth_headers(campus.student),
    )
    await client.post(
        f"/api/content-arrangement/course/{campus.course.id}/mark-updated", json={}, headers=auth_headers(campus.cc)
    )

    result = await approve_and_launch(client, campus)
    assert result["arrangement_version"] == 2

    rows = (await db_session.execute(
        select(StudentProgress).where(StudentProgress.student_id == campus.student.id)
    )).scalars().all()
    assert [r.arrangement_version for r in rows] == [2]


@pytest.mark.asyncio
async def test_only_coordinator_or_admin_marks_content_updated(client, campus):
    url = f"/api/content-arrangement/course/{campus.course.id}/mark-updated"

    for user in (campus.teacher, campus.hod, campus.dean):
        res = await client.post(url, json={}, headers=auth_headers(user))
        assert res.status_code == 403, user.name

    res = await client.post(url, json={}, headers=auth_headers(campus.admin))
    assert res.status_code == 200
    assert res.json()["students_affected"] == 0


def _items(body):
    return {i["title"]: i for unit in body["units"] for i in unit["items"]}


@pytest.mark.asyncio
async def test_videos_unlock_in_arranged_order(client, campus):
    await approve_and_launch(client, campus)
    student = auth_headers(campus.student)
    url = f"/api/learning/courses/{campus.course.id}"

    items = _items((await client.get(url, headers=student)).json())
    assert {t: i["is_unlocked"] for t, i in items.items()} == {
        "Intro": True, "Variables": False, "Notes 1": True, "Loops": False, "Notes 2": True,
    }

    # locked videos take no progress, documents always do
    for video in (campus.v2, campus.v3):
        res = await client.post(
            "/api/learning/progress",
            json={"content_type": "video", "content_id": str(video.id), "completed": True},
            headers=student,
        )
        assert res.status_code == 403
    res = await client.post(
        "/api/learning/progress",
        json={"content_type": "document", "content_id": str(campus.d2.id)},
        headers=student,
    )
    assert res.status_code == 200

    # a started but unfinished video keeps the next one closed
    res = await client.post(
        "/api/learning/progress",
        json={"content_type": "video", "content_id": str(campus.v1.id), "watched_seconds": 20},
        headers=student,
    )
    assert res.json()["status"] == "in_progress"
    items = _items((await client.get(url, headers=student)).json())
    assert items["Variables"]["is_unlocked"] is False

    for video in (campus.v1, campus.v2):
        res = await client.post(
            "/api/learning/progress",
            json={"content_type": "video", "content_id": str(video.id), "completed": True},
            headers=student,
        )
        assert res.status_code == 200, res.text

    items = _items((await client.get(url, headers=student)).json())
    assert items["Variables"]["is_unlocked"] is True
    assert items["Loops"]["is_unlocked"] is True


@pytest.mark.asyncio
async def test_rearranged_first_video_is_open(client, campus):
    cc = auth_headers(campus.cc)
    arrangement = await open_arrangement(client, campus)
    u1, u2 = str(campus.unit1.id), str(campus.unit2.id)
    items = [
        {"type": "video", "content_id": str(campus.v2.id), "unit_id": u1, "order": 1},
        {"type": "video", "content_id": str(campus.v1.id), "unit_id": u1, "order": 2},
        {"type": "document", "content_id": str(campus.d1.id), "unit_id": u1, "order": 3},
        {"type": "video", "content_id": str(campus.v3.id), "unit_id": u2, "order": 1},
        {"type": "document", "content_id": str(campus.d2.id), "unit_id": u2, "order": 2},
    ]
    res = await client.put(f"/api/content-arrangement/{arrangement['id']}", json={"items": items}, headers=cc)
    assert res.status_code == 200, res.text
    await approve_and_launch(client, campus)

    student = auth_headers(campus.student)
    body = (await client.get(f"/api/learning/courses/{campus.course.id}", headers=student)).json()
    first = body["units"][0]["items"]
    assert [(i["title"], i["is_unlocked"]) for i in first[:2]] == [("Variables", True), ("Intro", False)]
