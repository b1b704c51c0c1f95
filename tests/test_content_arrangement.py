import asyncio

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from conftest import auth_headers, open_arrangement, approve_and_launch
from lms.models.content import Video, ReadingMaterial
from lms.models.course import Course, CourseLaunch
from lms.models.content_arrangement import ContentArrangement
from lms.models.notification import Notification


BASE = "/api/content-arrangement"


def _by_content(items):
    return {i["content_id"]: i for i in items}


def _reordered(campus):
    """Swap the two unit 1 videos and move Notes 1 to the end of unit 2."""
    u1, u2 = str(campus.unit1.id), str(campus.unit2.id)
    return [
        {"type": "video", "content_id": str(campus.v2.id), "unit_id": u1, "order": 1},
        {"type": "video", "content_id": str(campus.v1.id), "unit_id": u1, "order": 2},
        {"type": "video", "content_id": str(campus.v3.id), "unit_id": u2, "order": 1},
        {"type": "document", "content_id": str(campus.d2.id), "unit_id": u2, "order": 2},
        {"type": "document", "content_id": str(campus.d1.id), "unit_id": u2, "order": 3},
    ]


# ------------------------------------------------------------------
# FIRST VIEW
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_first_view_snapshots_course_layout(client, campus):
    res = await client.get(f"{BASE}/course/{campus.course.id}", headers=auth_headers(campus.cc))
    assert res.status_code == 200, res.text
    body = res.json()

    assert body["can_edit"] is True
    assert [u["title"] for u in body["units"]] == ["Unit 1", "Unit 2"]

    arrangement = body["arrangement"]
    assert arrangement["version"] == 1
    assert arrangement["status"] == "open"

    items = _by_content(arrangement["items"])
    assert items[str(campus.v1.id)]["order"] == 1
    assert items[str(campus.v2.id)]["order"] == 2
    assert items[str(campus.d1.id)]["order"] == 3
    assert items[str(campus.v3.id)]["order"] == 1
    assert items[str(campus.d2.id)]["order"] == 2
    assert items[str(campus.d1.id)]["original_unit_id"] == str(campus.unit1.id)


@pytest.mark.asyncio
async def test_second_view_reuses_open_arrangement(client, campus):
    first = await open_arrangement(client, campus)
    second = await open_arrangement(client, campus)
    assert first["id"] == second["id"]
    assert second["version"] == 1


@pytest.mark.asyncio
async def test_hod_sees_nothing_before_submission(client, campus):
    await open_arrangement(client, campus)
    res = await client.get(f"{BASE}/course/{campus.course.id}", headers=auth_headers(campus.hod))
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_teacher_without_coordinator_role_is_forbidden(client, campus):
    res = await client.get(f"{BASE}/course/{campus.course.id}", headers=auth_headers(campus.teacher))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_open_arrangement_picks_up_new_and_deleted_content(client, campus):
    arrangement = await open_arrangement(client, campus)
    cc = auth_headers(campus.cc)

    res = await client.post(
        f"/api/units/{campus.unit1.id}/documents", json={"title": "Extra reading", "pages": 2}, headers=cc
    )
    assert res.status_code == 201
    new_doc = res.json()["id"]

    res = await client.delete(f"/api/content/video/{campus.v3.id}", headers=cc)
    assert res.status_code == 200

    synced = await open_arrangement(client, campus)
    assert synced["id"] == arrangement["id"]

    items = _by_content(synced["items"])
    assert str(campus.v3.id) not in items
    assert items[new_doc]["unit_id"] == str(campus.unit1.id)
    assert items[new_doc]["order"] == 4


# ------------------------------------------------------------------
# UPDATE
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_update_reorders_and_moves_between_units(client, campus):
    arrangement = await open_arrangement(client, campus)

    res = await client.put(
        f"{BASE}/{arrangement['id']}", json={"items": _reordered(campus)}, headers=auth_headers(campus.cc)
    )
    assert res.status_code == 200, res.text

    items = _by_content(res.json()["items"])
    moved = items[str(campus.d1.id)]
    assert moved["unit_id"] == str(campus.unit2.id)
    assert moved["order"] == 3
    assert moved["original_unit_id"] == str(campus.unit1.id)
    assert moved["original_order"] == 3
    assert moved["title"] == "Notes 1"


@pytest.mark.asyncio
@pytest.mark.parametrize("mutation", ["drop", "duplicate", "foreign_unit", "wrong_type", "bad_order"])
async def test_update_rejects_invalid_items(client, campus, mutation):
    arrangement = await open_arrangement(client, campus)
    items = _reordered(campus)

    if mutation == "drop":
        items = items[:-1]
    elif mutation == "duplicate":
        items[-1] = dict(items[0], order=9)
    elif mutation == "foreign_unit":
        items[0]["unit_id"] = "00000000-0000-0000-0000-000000000001"
    elif mutation == "wrong_type":
        items[0]["type"] = "document"
    elif mutation == "bad_order":
        items[0]["order"] = 0

    res = await client.put(f"{BASE}/{arrangement['id']}", json={"items": items}, headers=auth_headers(campus.cc))
    assert res.status_code in (400, 422)


@pytest.mark.asyncio
async def test_only_coordinator_can_update(client, campus):
    arrangement = await open_arrangement(client, campus)
    res = await client.put(
        f"{BASE}/{arrangement['id']}", json={"items": _reordered(campus)}, headers=auth_headers(campus.teacher)
    )
    assert res.status_code == 403


# ------------------------------------------------------------------
# SUBMIT / REVIEW
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_submit_then_approve_applies_order(client, campus, db_session):
    arrangement = await open_arrangement(client, campus)
    cc, hod = auth_headers(campus.cc), auth_headers(campus.hod)

    await client.put(f"{BASE}/{arrangement['id']}", json={"items": _reordered(campus)}, headers=cc)

    res = await client.post(f"{BASE}/{arrangement['id']}/submit", headers=cc)
    assert res.status_code == 200
    assert res.json()["status"] == "submitted"
    assert res.json()["submitted_at"] is not None

    # submitted arrangements are read only
    res = await client.put(f"{BASE}/{arrangement['id']}", json={"items": _reordered(campus)}, headers=cc)
    assert res.status_code == 400

    res = await client.get(f"{BASE}/course/{campus.course.id}", headers=hod)
    assert res.status_code == 200
    assert res.json()["can_edit"] is False

    res = await client.post(f"{BASE}/{arrangement['id']}/review", json={"action": "approve"}, headers=hod)
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "approved"
    assert res.json()["approved_by"] == str(campus.hod.id)

    v1 = await db_session.get(Video, campus.v1.id)
    v2 = await db_session.get(Video, campus.v2.id)
    d1 = await db_session.get(ReadingMaterial, campus.d1.id)
    d2 = await db_session.get(ReadingMaterial, campus.d2.id)
    for row in (v1, v2, d1, d2):
        await db_session.refresh(row)

    assert (v2.sequence, v1.sequence) == (1, 2)
    assert d1.unit_id == campus.unit2.id
    assert (d2.order, d1.order) == (1, 2)

    course = await db_session.get(Course, campus.course.id)
    await db_session.refresh(course)
    assert course.current_arrangement_status.value == "approved"

    note = (await db_session.execute(
        select(Notification).where(Notification.user_id == campus.cc.id)
    )).scalars().first()
    assert note is not None
    assert note.kind == "arrangement_review"


@pytest.mark.asyncio
async def test_reject_requires_reason_and_reopens_from_rejected_items(client, campus):
    arrangement = await open_arrangement(client, campus)
    cc, hod = auth_headers(campus.cc), auth_headers(campus.hod)

    await client.put(f"{BASE}/{arrangement['id']}", json={"items": _reordered(campus)}, headers=cc)
    await client.post(f"{BASE}/{arrangement['id']}/submit", headers=cc)

    res = await client.post(f"{BASE}/{arrangement['id']}/review", json={"action": "reject"}, headers=hod)
    assert res.status_code == 400

    res = await client.post(f"{BASE}/{arrangement['id']}/review", json={"action": "archive"}, headers=hod)
    assert res.status_code == 400

    res = await client.post(
        f"{BASE}/{arrangement['id']}/review",
        json={"action": "reject", "reason": "Put the loops video first"},
        headers=hod,
    )
    assert res.status_code == 200
    assert res.json()["status"] == "rejected"
    assert res.json()["rejection_reason"] == "Put the loops video first"

    reopened = await open_arrangement(client, campus)
    assert reopened["id"] != arrangement["id"]
    assert reopened["version"] == 2
    assert reopened["status"] == "open"
    assert _by_content(reopened["items"])[str(campus.d1.id)]["unit_id"] == str(campus.unit2.id)


@pytest.mark.asyncio
async def test_coordinator_cannot_review(client, campus):
    arrangement = await open_arrangement(client, campus)
    await client.post(f"{BASE}/{arrangement['id']}/submit", headers=auth_headers(campus.cc))

    res = await client.post(
        f"{BASE}/{arrangement['id']}/review", json={"action": "approve"}, headers=auth_headers(campus.cc)
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_cannot_review_open_arrangement(client, campus):
    arrangement = await open_arrangement(client, campus)
    res = await client.post(
        f"{BASE}/{arrangement['id']}/review", json={"action": "approve"}, headers=auth_headers(campus.hod)
    )
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_empty_arrangement_cannot_be_submitted(client, campus, db_session):
    from lms.models.course import CourseCoordinator

    empty = Course(title="Empty Course", code="CS999", department_id=campus.dept.id)
    db_session.add(empty)
    await db_session.commit()
    await db_session.refresh(empty)
    db_session.add(CourseCoordinator(course_id=empty.id, teacher_id=campus.cc.id))
    await db_session.commit()

    res = await client.get(f"{BASE}/course/{empty.id}", headers=auth_headers(campus.cc))
    assert res.status_code == 200
    arrangement = res.json()["arrangement"]
    assert arrangement["items"] == []

    res = await client.post(f"{BASE}/{arrangement['id']}/submit", headers=auth_headers(campus.cc))
    assert res.status_code == 400


# ------------------------------------------------------------------
# LOCKING / NEW CONTENT
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_approved_arrangement_is_locked(client, campus):
    arrangement = await open_arrangement(client, campus)
    await client.post(f"{BASE}/{arrangement['id']}/submit", headers=auth_headers(campus.cc))
    await client.post(
        f"{BASE}/{arrangement['id']}/review", json={"action": "approve"}, headers=auth_headers(campus.hod)
    )

    res = await client.get(f"{BASE}/course/{campus.course.id}", headers=auth_headers(campus.cc))
    assert res.status_code == 403
    body = res.json()
    assert body["is_locked"] is True
    assert body["can_edit"] is False
    assert body["arrangement"]["id"] == arrangement["id"]


@pytest.mark.asyncio
async def test_new_content_after_launch_opens_next_version(client, campus):
    await approve_and_launch(client, campus)

    res = await client.post(
        f"/api/units/{campus.unit1.id}/videos",
        json={"title": "Functions", "duration": 120},
        headers=auth_headers(campus.cc),
    )
    assert res.status_code == 201
    new_video = res.json()["id"]

    arrangement = await open_arrangement(client, campus)
    assert arrangement["version"] == 2
    assert arrangement["status"] == "open"
    assert _by_content(arrangement["items"])[new_video]["unit_id"] == str(campus.unit1.id)

    res = await client.get(f"/api/courses/{campus.course.id}", headers=auth_headers(campus.cc))
    assert res.json()["has_new_content"] is False
    assert res.json()["current_arrangement_status"] == "draft"


# ------------------------------------------------------------------
# COMMENTS / HISTORY / QUEUES
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_comments_and_history(client, campus):
    arrangement = await open_arrangement(client, campus)
    cc, hod = auth_headers(campus.cc), auth_headers(campus.hod)

    res = await client.post(f"{BASE}/{arrangement['id']}/comments", json={"comment": "Ready soon"}, headers=cc)
    assert res.status_code == 200
    res = await client.post(f"{BASE}/{arrangement['id']}/comments", json={"comment": "Looks fine"}, headers=hod)
    comments = res.json()["comments"]
    assert [c["comment"] for c in comments] == ["Ready soon", "Looks fine"]
    assert comments[1]["user_name"] == "Hod"

    res = await client.post(
        f"{BASE}/{arrangement['id']}/comments", json={"comment": "hi"}, headers=auth_headers(campus.student)
    )
    assert res.status_code == 403

    await client.post(f"{BASE}/{arrangement['id']}/submit", headers=cc)
    await client.post(f"{BASE}/{arrangement['id']}/review", json={"action": "reject", "reason": "no"}, headers=hod)
    await open_arrangement(client, campus)

    res = await client.get(f"{BASE}/{campus.course.id}/history", headers=hod)
    assert res.status_code == 200
    history = res.json()
    assert [h["arrangement"]["version"] for h in history] == [2, 1]
    assert history[1]["rejected_by_name"] == "Hod"
    assert history[0]["coordinator_name"] == "Coordinator"


@pytest.mark.asyncio
async def test_pending_and_launch_ready_queues(client, campus):
    arrangement = await open_arrangement(client, campus)
    hod = auth_headers(campus.hod)

    res = await client.get(f"{BASE}/pending", headers=hod)
    assert res.status_code == 200
    assert res.json()["arrangements"] == []
    assert [c["code"] for c in res.json()["courses"]] == ["CS101"]

    await client.post(f"{BASE}/{arrangement['id']}/submit", headers=auth_headers(campus.cc))
    res = await client.get(f"{BASE}/pending", headers=hod)
    pending = res.json()["arrangements"]
    assert len(pending) == 1
    assert pending[0]["coordinator_name"] == "Coordinator"

    await client.post(f"{BASE}/{arrangement['id']}/review", json={"action": "approve"}, headers=hod)
    res = await client.get(f"{BASE}/approved", headers=hod)
    assert [r["arrangement"]["id"] for r in res.json()] == [arrangement["id"]]

    await client.post(f"{BASE}/course/{campus.course.id}/launch", headers=hod)
    res = await client.get(f"{BASE}/approved", headers=hod)
    assert res.json() == []


@pytest.mark.asyncio
async def test_pending_queue_is_not_for_teachers(client, campus):
    res = await client.get(f"{BASE}/pending", headers=auth_headers(campus.cc))
    assert res.status_code == 403


# ------------------------------------------------------------------
# LAUNCH
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_launch_requires_approved_arrangement(client, campus):
    await open_arrangement(client, campus)
    res = await client.post(f"{BASE}/course/{campus.course.id}/launch", headers=auth_headers(campus.hod))
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_launch_publishes_course(client, campus, db_session):
    result = await approve_and_launch(client, campus)

    assert result["arrangement_version"] == 1
    assert result["students_notified"] == 1
    assert result["course"]["is_launched"] is True
    assert result["course"]["active_arrangement_version"] == 1

    launches = (await db_session.execute(
        select(CourseLaunch).where(CourseLaunch.course_id == campus.course.id)
    )).scalars().all()
    assert len(launches) == 1

    videos = (await db_session.execute(
        select(Video).where(Video.course_id == campus.course.id)
        .execution_options(populate_existing=True)
    )).scalars().all()
    assert all(v.is_approved for v in videos)

    res = await client.get("/api/notifications/", headers=auth_headers(campus.student))
    assert [n["kind"] for n in res.json()] == ["course_launch"]


@pytest.mark.asyncio
async def test_only_one_open_arrangement_per_course(client, campus, db_session):
    await open_arrangement(client, campus)
    await open_arrangement(client, campus)
    rows = (await db_session.execute(
        select(ContentArrangement).where(ContentArrangement.course_id == campus.course.id)
    )).scalars().all()
    assert [r.status.value for r in rows] == ["open"]


# ------------------------------------------------------------------
# CONCURRENT FIRST VIEWS
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_concurrent_first_views_create_a_single_arrangement(client, campus, db_session):
    url = f"{BASE}/course/{campus.course.id}"
    responses = await asyncio.gather(
        *[client.get(url, headers=auth_headers(campus.cc)) for _ in range(3)]
    )

    assert [r.status_code for r in responses] == [200, 200, 200]
    assert len({r.json()["arrangement"]["id"] for r in responses}) == 1

    rows = (await db_session.execute(
        select(ContentArrangement.version, ContentArrangement.status)
        .where(ContentArrangement.course_id == campus.course.id)
    )).all()
    assert [(version, status.value) for version, status in rows] == [(1, "open")]


@pytest.mark.asyncio
async def test_arrangement_versions_are_unique_per_course(campus, db_session):
    for _ in range(2):
        db_session.add(ContentArrangement(course_id=campus.course.id, coordinator_id=campus.cc.id, version=1))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()
