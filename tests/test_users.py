import pytest
from unittest.mock import patch

from conftest import auth_headers


def _new_teacher(campus, **overrides):
    data = {
        "name": "New Teacher",
        "email": "new.teacher@campus.edu",
        "password": "password123",
        "role": "Teacher",
        "department_id": campus.dept.id,
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_admin_creates_user(client, campus):
    with patch("lms.api.endpoints.users.send_welcome_email") as mock_send:
        res = await client.post("/api/users/", json=_new_teacher(campus), headers=auth_headers(campus.admin))
        assert res.status_code == 201, res.text
        mock_send.assert_called_once()

    body = res.json()
    assert body["role"] == "Teacher"
    assert body["school_id"] == campus.school.id

    res = await client.post("/api/users/", json=_new_teacher(campus), headers=auth_headers(campus.admin))
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_create_user_validation(client, campus):
    admin = auth_headers(campus.admin)

    res = await client.post(
        "/api/users/",
        json=_new_teacher(campus, email="s@campus.edu", role="Student"),
        headers=admin,
    )
    assert res.status_code == 400

    res = await client.post(
        "/api/users/",
        json=_new_teacher(campus, email="t@campus.edu", department_id=None),
        headers=admin,
    )
    assert res.status_code == 400

    res = await client.post(
        "/api/users/",
        json=_new_teacher(campus, email="d@campus.edu", role="Dean", department_id=None, school_id=999),
        headers=admin,
    )
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_non_admin_cannot_manage_users(client, campus):
    res = await client.post("/api/users/", json=_new_teacher(campus), headers=auth_headers(campus.dean))
    assert res.status_code == 403

    res = await client.get("/api/users/", headers=auth_headers(campus.hod))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_list_and_filter_users(client, campus):
    admin = auth_headers(campus.admin)

    res = await client.get("/api/users/", params={"role": "Student"}, headers=admin)
    assert sorted(u["name"] for u in res.json()) == ["Asha Student", "Bala Student"]

    res = await client.get("/api/users/", params={"department_id": campus.other_dept.id}, headers=admin)
    assert [u["name"] for u in res.json()] == ["Outsider"]

    res = await client.get(f"/api/users/{campus.hod.id}", headers=admin)
    assert res.json()["email"] == "hod@campus.edu"

    res = await client.get("/api/users/00000000-0000-0000-0000-000000000001", headers=admin)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_update_user(client, campus):
    admin = auth_headers(campus.admin)

    res = await client.put(
        f"/api/users/{campus.teacher.id}", json={"department_id": campus.other_dept.id}, headers=admin
    )
    assert res.status_code == 200
    assert res.json()["department_id"] == campus.other_dept.id

    res = await client.put(f"/api/users/{campus.teacher.id}", json={"email": "hod@campus.edu"}, headers=admin)
    assert res.status_code == 400

    res = await client.put(
        "/api/users/00000000-0000-0000-0000-000000000001", json={"name": "Nobody"}, headers=admin
    )
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_delete_is_soft(client, campus):
    admin = auth_headers(campus.admin)

    res = await client.delete(f"/api/users/{campus.teacher.id}", headers=admin)
    assert res.status_code == 200

    res = await client.get(f"/api/users/{campus.teacher.id}", headers=admin)
    assert res.json()["is_active"] is False

    res = await client.delete(f"/api/users/{campus.admin.id}", headers=admin)
    assert res.status_code == 400

    res = await client.get("/api/admin/audit-logs", params={"category": "users"}, headers=admin)
    assert [row["action"] for row in res.json()] == ["USER_DEACTIVATED"]
