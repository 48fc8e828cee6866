"""
HTTP layer: auth, routing and the mapping of domain errors onto status codes
"""
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker

from bunkhouse.core.messages import messages
from bunkhouse.core.security import create_access_token
from bunkhouse.database import get_db
from bunkhouse.main import app
from bunkhouse.services.window_service import WindowService


def auth(user_id: int) -> dict:
    token = create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(engine):
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_db():
        async with Session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_requires_token(client, house):
    response = await client.get(f"/houses/{house.id}/rooms")
    assert response.status_code == 401

    response = await client.get(
        f"/houses/{house.id}/rooms", headers={"Authorization": "Bearer garbage"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_email_is_mirrored(client):
    token = create_access_token({"email": "new@example.com", "name": "Newcomer"})
    response = await client.post(
        "/houses", json={"name": "Shack"}, headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 201
    assert response.json()["name"] == "Shack"


@pytest.mark.asyncio
async def test_room_catalog_is_admin_only(client, house):
    response = await client.post(
        f"/houses/{house.id}/rooms", json={"name": "Attic"}, headers=auth(house.alice_id)
    )
    assert response.status_code == 403
    assert response.json()["detail"] == messages.PERMISSION_DENIED

    response = await client.post(
        f"/houses/{house.id}/rooms", json={"name": "Attic"}, headers=auth(house.admin_id)
    )
    assert response.status_code == 201

    response = await client.get(f"/houses/{house.id}/rooms", headers=auth(house.bob_id))
    assert response.status_code == 200
    assert [room["name"] for room in response.json()] == ["Attic"]


@pytest.mark.asyncio
async def test_claim_flow(client, house, two_beds, open_window):
    window_id = await open_window(house)
    bed_a, bed_b = two_beds

    response = await client.post(
        f"/windows/{window_id}/claims", json={"bed_id": bed_a}, headers=auth(house.alice_id)
    )
    assert response.status_code == 201
    assert response.json()["user_id"] == house.alice_id

    response = await client.post(
        f"/windows/{window_id}/claims", json={"bed_id": bed_a}, headers=auth(house.bob_id)
    )
    assert response.status_code == 409
    assert response.json() == {"error": "bed_taken", "detail": messages.BED_TAKEN}

    response = await client.post(
        f"/windows/{window_id}/claims", json={"bed_id": bed_b}, headers=auth(house.alice_id)
    )
    assert response.status_code == 409
    assert response.json()["detail"] == messages.ALREADY_CLAIMED

    response = await client.get(f"/windows/{window_id}/claims/me", headers=auth(house.alice_id))
    assert response.status_code == 200
    assert response.json()["bed_id"] == bed_a

    response = await client.get(f"/windows/{window_id}/claims/me", headers=auth(house.bob_id))
    assert response.status_code == 200
    assert response.json() is None


@pytest.mark.asyncio
async def test_claim_after_close(client, session, house, two_beds, open_window):
    window_id = await open_window(house)
    await WindowService.close_window_as_admin(session, window_id, house.admin_id)

    response = await client.post(
        f"/windows/{window_id}/claims", json={"bed_id": two_beds[0]}, headers=auth(house.alice_id)
    )
    assert response.status_code == 412
    assert response.json() == {"error": "window_not_open", "detail": messages.SIGNUP_CLOSED}


@pytest.mark.asyncio
async def test_missing_window(client, house):
    response = await client.get("/windows/404", headers=auth(house.alice_id))
    assert response.status_code == 404
    assert response.json()["detail"] == messages.NOT_FOUND


@pytest.mark.asyncio
async def test_release_claim(client, house, two_beds, open_window):
    window_id = await open_window(house)
    response = await client.post(
        f"/windows/{window_id}/claims", json={"bed_id": two_beds[1]}, headers=auth(house.alice_id)
    )
    claim_id = response.json()["id"]

    response = await client.delete(f"/claims/{claim_id}", headers=auth(house.bob_id))
    assert response.status_code == 403

    response = await client.delete(f"/claims/{claim_id}", headers=auth(house.alice_id))
    assert response.status_code == 204

    response = await client.get(f"/windows/{window_id}", headers=auth(house.alice_id))
    assert response.status_code == 200
    assert response.json()["claimed_beds"] == 0
