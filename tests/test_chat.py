import pytest

from conftest import auth_headers


def _room(campus):
    return f"/api/chat/{campus.section.id}/{campus.course.id}/messages"


@pytest.mark.asyncio
async def test_members_post_and_read(client, campus):
    res = await client.post(_room(campus), json={"message": "  Hello class  "}, headers=auth_headers(campus.cc))
    assert res.status_code == 201
    assert res.json()["message"] == "Hello class"
    assert res.json()["sender_role"] == "Teacher"

    await client.post(_room(campus), json={"message": "Hi!"}, headers=auth_headers(campus.student))

    res = await client.get(_room(campus), headers=auth_headers(campus.hod))
    assert res.status_code == 200
    assert [m["message"] for m in res.json()] == ["Hello class", "Hi!"]


@pytest.mark.asyncio
async def test_non_members_are_rejected(client, campus):
    for user in (campus.student2, campus.teacher, campus.outsider):
        res = await client.get(_room(campus), headers=auth_headers(user))
        assert res.status_code == 403


@pytest.mark.asyncio
async def test_unknown_room_is_404(client, campus):
    res = await client.get(
        f"/api/chat/{campus.section.id}/00000000-0000-0000-0000-000000000001/messages",
        headers=auth_headers(campus.admin),
    )
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_message_validation(client, campus):
    student = auth_headers(campus.student)

    res = await client.post(_room(campus), json={"message": "   "}, headers=student)
    assert res.status_code == 400

    res = await client.post(_room(campus), json={"message": "x" * 2001}, headers=student)
    assert res.status_code == 400

    res = await client.post(_room(campus), json={"message": "x" * 2000}, headers=student)
    assert res.status_code == 201


@pytest.mark.asyncio
async def test_pagination_returns_latest_page_oldest_first(client, campus):
    cc = auth_headers(campus.cc)
    for i in range(5):
        await client.post(_room(campus), json={"message": f"m{i}"}, headers=cc)

    res = await client.get(_room(campus), params={"limit": 2}, headers=cc)
    page = res.json()
    assert [m["message"] for m in page] == ["m3", "m4"]

    res = await client.get(_room(campus), params={"limit": 2, "before": page[0]["created_at"]}, headers=cc)
    assert [m["message"] for m in res.json()] == ["m1", "m2"]

    res = await client.get(_room(campus), params={"limit": 101}, headers=cc)
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_delete_rules(client, campus):
    res = await client.post(_room(campus), json={"message": "oops"}, headers=auth_headers(campus.student))
    message_id = res.json()["id"]

    res = await client.delete(f"/api/chat/messages/{message_id}", headers=auth_headers(campus.cc))
    assert res.status_code == 403

    res = await client.delete(f"/api/chat/messages/{message_id}", headers=auth_headers(campus.hod))
    assert res.status_code == 200
    assert res.json()["is_deleted"] is True
    assert res.json()["message"] == ""

    res = await client.delete(f"/api/chat/messages/{message_id}", headers=auth_headers(campus.student))
    assert res.status_code == 404

    res = await client.get(_room(campus), headers=auth_headers(campus.student))
    assert res.json()[0]["is_deleted"] is True


@pytest.mark.asyncio
async def test_rooms_listing(client, campus):
    res = await client.get("/api/chat/rooms", headers=auth_headers(campus.student))
    rooms = res.json()
    assert len(rooms) == 1
    assert rooms[0]["course_code"] == "CS101"
    assert rooms[0]["last_message_at"] is None

    res = await client.get("/api/chat/rooms", headers=auth_headers(campus.student2))
    assert res.json() == []
