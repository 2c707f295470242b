import asyncio

from frontdesk.database import SessionLocal


def _vet(make_user, **kwargs):
    async def _run():
        async with SessionLocal() as session:
            return (await make_user(session, **kwargs)).id

    return asyncio.run(_run())


def test_room_crud_and_soft_delete(client):
    r = client.post("/api/v1/rooms", json={"name": "Consultorio 1"})
    assert r.status_code == 201
    room = r.json()

    r = client.post("/api/v1/rooms", json={"name": "consultorio 1"})
    assert r.status_code == 422

    r = client.patch(f"/api/v1/rooms/{room['id']}", json={"name": "Consultorio A"})
    assert r.status_code == 200
    assert r.json()["name"] == "Consultorio A"

    r = client.delete(f"/api/v1/rooms/{room['id']}")
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    assert client.get("/api/v1/rooms").json()["items"] == []
    assert [i["id"] for i in client.get("/api/v1/rooms/all").json()["items"]] == [room["id"]]


def test_check_in_exclusivity_through_the_api(client, make_user):
    room = client.post("/api/v1/rooms", json={"name": "Sala 1"}).json()
    first = _vet(make_user, name="Dr. First")
    second = _vet(make_user, name="Dr. Second")

    r = client.post(f"/api/v1/rooms/{room['id']}/check-in", json={"vet_id": str(first)})
    assert r.status_code == 200, r.text
    assert r.json()["current_room_id"] == room["id"]

    r = client.post(f"/api/v1/rooms/{room['id']}/check-in", json={"vet_id": str(second)})
    assert r.status_code == 409
    assert r.json()["code"] == "room_occupied_by_other"

    r = client.post("/api/v1/rooms/check-out", headers={"X-User-Id": str(first), "X-User-Role": "VET"})
    assert r.status_code == 200
    assert r.json()["current_room_id"] is None

    r = client.post("/api/v1/rooms/check-out", json={"vet_id": str(first)})
    assert r.status_code == 409
    assert r.json()["code"] == "not_checked_in"

    r = client.post(f"/api/v1/rooms/{room['id']}/check-in", json={"vet_id": str(second)})
    assert r.status_code == 200
