import pytest

from conftest import auth_headers


async def _announce(client, user, scope, target_id, title="Exam schedule", message="Mid-terms start Monday"):
    return await client.post(
        "/api/notifications/announce",
        json={"scope": scope, "target_id": str(target_id), "title": title, "message": message},
        headers=auth_headers(user),
    )


@pytest.mark.asyncio
async def test_hod_department_announcement_fans_out(client, campus):
    res = await _announce(client, campus.hod, "department", campus.dept.id)
    assert res.status_code == 201, res.text
    # cc, teacher, two students; the HOD is the sender
    assert res.json()["recipients_count"] == 4

    res = await client.get("/api/notifications/", headers=auth_headers(campus.student2))
    assert [n["title"] for n in res.json()] == ["Exam schedule"]

    res = await client.get("/api/notifications/", headers=auth_headers(campus.hod))
    assert res.json() == []


@pytest.mark.asyncio
async def test_scope_checks(client, campus):
    res = await _announce(client, campus.hod, "department", campus.other_dept.id)
    assert res.status_code == 403

    res = await _announce(client, campus.cc, "department", campus.dept.id)
    assert res.status_code == 403

    res = await _announce(client, campus.teacher, "section", campus.section.id)
    assert res.status_code == 403

    res = await _announce(client, campus.student, "section", campus.section.id)
    assert res.status_code == 403

    res = await _announce(client, campus.hod, "department", "not-a-number")
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_teacher_announces_to_own_section(client, campus):
    res = await _announce(client, campus.cc, "section", campus.section.id)
    assert res.status_code == 201
    assert res.json()["recipients_count"] == 1

    res = await client.get("/api/notifications/sent", headers=auth_headers(campus.cc))
    assert [a["scope"] for a in res.json()] == ["section"]


@pytest.mark.asyncio
async def test_dean_school_announcement(client, campus):
    res = await _announce(client, campus.dean, "school", campus.school.id)
    assert res.status_code == 201
    # hod, cc, teacher, outsider, two students
    assert res.json()["recipients_count"] == 6


@pytest.mark.asyncio
async def test_unread_count_and_mark_read(client, campus):
    await _announce(client, campus.hod, "department", campus.dept.id, title="One")
    await _announce(client, campus.hod, "department", campus.dept.id, title="Two")
    student = auth_headers(campus.student)

    res = await client.get("/api/notifications/unread-count", headers=student)
    assert res.json() == {"unread": 2}

    notes = (await client.get("/api/notifications/", headers=student)).json()
    res = await client.post(f"/api/notifications/{notes[0]['id']}/read", headers=student)
    assert res.status_code == 200
    assert res.json()["read_at"] is not None

    res = await client.get("/api/notifications/", params={"unread_only": True}, headers=student)
    assert len(res.json()) == 1

    # someone else's notification
    res = await client.post(f"/api/notifications/{notes[1]['id']}/read", headers=auth_headers(campus.student2))
    assert res.status_code == 404

    res = await client.post("/api/notifications/read-all", headers=student)
    assert res.json()["updated"] == 1
    res = await client.get("/api/notifications/unread-count", headers=student)
    assert res.json() == {"unread": 0}
