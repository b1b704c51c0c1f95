import pytest

from conftest import auth_headers


@pytest.mark.asyncio
async def test_admin_creates_school_and_dean_creates_department(client, campus):
    res = await client.post(
        "/api/schools", json={"name": "School of Law", "code": "sol"}, headers=auth_headers(campus.admin)
    )
    assert res.status_code == 201
    assert res.json()["code"] == "SOL"
    law_id = res.json()["id"]

    dean = auth_headers(campus.dean)
    res = await client.post(
        "/api/departments", json={"name": "Electronics", "code": "ece", "school_id": campus.school.id}, headers=dean
    )
    assert res.status_code == 201
    assert res.json()["code"] == "ECE"

    # other school
    res = await client.post(
        "/api/departments", json={"name": "Corporate Law", "code": "CL", "school_id": law_id}, headers=dean
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_school_code_rejected(client, campus):
    res = await client.post(
        "/api/schools", json={"name": "Another", "code": "SOE"}, headers=auth_headers(campus.admin)
    )
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_teacher_cannot_create_school(client, campus):
    res = await client.post(
        "/api/schools", json={"name": "X", "code": "X"}, headers=auth_headers(campus.teacher)
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_hod_creates_course_in_own_department_only(client, campus):
    hod = auth_headers(campus.hod)
    res = await client.post(
        "/api/courses", json={"title": "Data Structures", "code": "cs201", "department_id": campus.dept.id}, headers=hod
    )
    assert res.status_code == 201
    body = res.json()
    assert body["code"] == "CS201"
    assert body["is_launched"] is False
    assert body["current_arrangement_status"] == "none"

    res = await client.post(
        "/api/courses", json={"title": "Thermo", "code": "ME101", "department_id": campus.other_dept.id}, headers=hod
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_course_listing_is_scoped(client, campus):
    res = await client.get("/api/courses", headers=auth_headers(campus.outsider))
    assert res.json() == []

    res = await client.get("/api/courses", headers=auth_headers(campus.student))
    assert [c["code"] for c in res.json()] == ["CS101"]

    res = await client.get("/api/courses", headers=auth_headers(campus.student2))
    assert res.json() == []


@pytest.mark.asyncio
async def test_units_and_content_get_next_position(client, campus):
    cc = auth_headers(campus.cc)

    res = await client.post(f"/api/courses/{campus.course.id}/units", json={"title": "Unit 3"}, headers=cc)
    assert res.status_code == 201
    assert res.json()["order"] == 3
    unit3 = res.json()["id"]

    res = await client.post(f"/api/units/{unit3}/videos", json={"title": "A", "duration": 60}, headers=cc)
    assert res.json()["sequence"] == 1
    res = await client.post(f"/api/units/{unit3}/videos", json={"title": "B", "duration": 60}, headers=cc)
    assert res.json()["sequence"] == 2
    res = await client.post(f"/api/units/{unit3}/documents", json={"title": "C"}, headers=cc)
    assert res.json()["order"] == 1

    res = await client.get(f"/api/courses/{campus.course.id}/units", headers=cc)
    assert [u["title"] for u in res.json()] == ["Unit 1", "Unit 2", "Unit 3"]


@pytest.mark.asyncio
async def test_teacher_of_other_department_cannot_add_content(client, campus):
    res = await client.post(
        f"/api/units/{campus.unit1.id}/videos", json={"title": "Nope"}, headers=auth_headers(campus.outsider)
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_delete_missing_content_is_404(client, campus):
    res = await client.delete(
        "/api/content/document/00000000-0000-0000-0000-000000000001", headers=auth_headers(campus.cc)
    )
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_assign_and_remove_coordinator(client, campus):
    hod = auth_headers(campus.hod)
    url = f"/api/courses/{campus.course.id}/coordinators"

    res = await client.post(url, json={"teacher_id": str(campus.teacher.id)}, headers=hod)
    assert res.status_code == 201

    res = await client.post(url, json={"teacher_id": str(campus.teacher.id)}, headers=hod)
    assert res.status_code == 400

    res = await client.post(url, json={"teacher_id": str(campus.outsider.id)}, headers=hod)
    assert res.status_code == 400

    res = await client.get(url, headers=hod)
    assert sorted(u["name"] for u in res.json()) == ["Coordinator", "Other Teacher"]

    res = await client.get("/api/courses/coordinated", headers=auth_headers(campus.teacher))
    assert [c["code"] for c in res.json()] == ["CS101"]

    res = await client.delete(f"{url}/{campus.teacher.id}", headers=hod)
    assert res.status_code == 200
    res = await client.delete(f"{url}/{campus.teacher.id}", headers=hod)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_teacher_cannot_assign_coordinator(client, campus):
    res = await client.post(
        f"/api/courses/{campus.course.id}/coordinators",
        json={"teacher_id": str(campus.teacher.id)},
        headers=auth_headers(campus.cc),
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_dean_sets_department_hod(client, campus, db_session):
    from lms.services.auth_service import create_user
    from lms.models.user import UserRole

    new_hod = await create_user(
        db_session, "New Hod", "newhod@campus.edu", "password123", UserRole.HOD,
        department_id=campus.other_dept.id,
    )
    res = await client.put(
        f"/api/departments/{campus.other_dept.id}/hod",
        json={"hod_id": str(new_hod.id)},
        headers=auth_headers(campus.dean),
    )
    assert res.status_code == 200
    assert res.json()["hod_id"] == str(new_hod.id)

    res = await client.put(
        f"/api/departments/{campus.other_dept.id}/hod",
        json={"hod_id": str(campus.teacher.id)},
        headers=auth_headers(campus.dean),
    )
    assert res.status_code == 400
