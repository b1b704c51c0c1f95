import pytest
from unittest.mock import patch
from sqlmodel import select

from conftest import PASSWORD, auth_headers
from lms.models.user import User


@pytest.mark.asyncio
async def test_login_with_email(client, campus):
    res = await client.post("/api/auth/login", json={"identifier": "HOD@campus.edu", "password": PASSWORD})
    assert res.status_code == 200
    body = res.json()
    assert body["access_token"]
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "HOD"
    assert body["department_name"] == "Computer Science"

    res = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert res.status_code == 200
    assert res.json()["email"] == "hod@campus.edu"


@pytest.mark.asyncio
async def test_login_with_registration_number(client, campus):
    res = await client.post("/api/auth/login", json={"identifier": "cse2024001", "password": PASSWORD})
    assert res.status_code == 200
    assert res.json()["user"]["registration_number"] == "CSE2024001"


@pytest.mark.asyncio
async def test_login_failures(client, campus, db_session):
    res = await client.post("/api/auth/login", json={"identifier": "hod@campus.edu", "password": "wrong-pass"})
    assert res.status_code == 401

    res = await client.post("/api/auth/login", json={"identifier": "nobody@campus.edu", "password": PASSWORD})
    assert res.status_code == 401

    campus.student2.is_active = False
    db_session.add(campus.student2)
    await db_session.commit()

    res = await client.post("/api/auth/login", json={"identifier": "bala@campus.edu", "password": PASSWORD})
    assert res.status_code == 401

    res = await client.get("/api/auth/me", headers=auth_headers(campus.student2))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_me_requires_valid_token(client, campus):
    res = await client.get("/api/auth/me")
    assert res.status_code == 401

    res = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_password_reset_flow(client, campus, db_session):
    with patch("lms.api.endpoints.auth.send_password_reset_email") as mock_send:
        res = await client.post("/api/auth/forgot-password", json={"email": "asha@campus.edu"})
        assert res.status_code == 200
        mock_send.assert_called_once()
        sent = mock_send.call_args[0][0]

    user = (await db_session.execute(
        select(User).where(User.email == "asha@campus.edu").execution_options(populate_existing=True)
    )).scalar_one()
    assert user.otp_code == sent["otp"]

    res = await client.post("/api/auth/verify-reset-otp", json={"email": "asha@campus.edu", "otp": "000000"})
    assert res.status_code == 400

    res = await client.post("/api/auth/verify-reset-otp", json={"email": "asha@campus.edu", "otp": sent["otp"]})
    assert res.status_code == 200

    res = await client.post(
        "/api/auth/reset-password",
        json={"email": "asha@campus.edu", "otp": sent["otp"], "new_password": "brand-new-pass"},
    )
    assert res.status_code == 200

    res = await client.post("/api/auth/login", json={"identifier": "asha@campus.edu", "password": "brand-new-pass"})
    assert res.status_code == 200

    # OTP is single use
    res = await client.post(
        "/api/auth/reset-password",
        json={"email": "asha@campus.edu", "otp": sent["otp"], "new_password": "another-pass"},
    )
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(client, campus):
    res = await client.post("/api/auth/forgot-password", json={"email": "ghost@campus.edu"})
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_change_password(client, campus):
    headers = auth_headers(campus.cc)

    res = await client.post(
        "/api/account/change-password",
        json={"old_password": "wrong-pass", "new_password": "newpassword1"},
        headers=headers,
    )
    assert res.status_code == 400

    res = await client.post(
        "/api/account/change-password",
        json={"old_password": PASSWORD, "new_password": PASSWORD},
        headers=headers,
    )
    assert res.status_code == 400

    res = await client.post(
        "/api/account/change-password",
        json={"old_password": PASSWORD, "new_password": "newpassword1"},
        headers=headers,
    )
    assert res.status_code == 200

    res = await client.post("/api/auth/login", json={"identifier": "cc@campus.edu", "password": "newpassword1"})
    assert res.status_code == 200
