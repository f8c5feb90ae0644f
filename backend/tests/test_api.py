import pytest

from spindecide.services import room_service as room_service_module
from spindecide.utils.rate_limit import RateLimiter
from spindecide.utils.validation import ROOM_CODE_RE


async def create_room(client, category="eat", host_name="Al") -> str:
    response = await client.post("/api/rooms", json={"category": category, "hostName": host_name})
    assert response.status_code == 201
    return response.json()["code"]


async def join_room(client, code, name):
    response = await client.post(f"/api/rooms/{code}/join", json={"name": name})
    assert response.status_code == 200
    assert response.json() == {"success": True}


async def add_option(client, code, text) -> dict:
    response = await client.post(f"/api/rooms/{code}/options", json={"text": text})
    assert response.status_code == 200
    return response.json()["option"]


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_create_room_sets_session_cookie(client):
    response = await client.post("/api/rooms", json={"category": "eat", "hostName": "Al"})

    assert response.status_code == 201
    assert ROOM_CODE_RE.fullmatch(response.json()["code"])
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("spin_session=")
    assert "HttpOnly" in set_cookie
    assert "Max-Age=86400" in set_cookie
    assert "Path=/" in set_cookie
    assert "samesite=lax" in set_cookie.lower()


async def test_full_decision_flow(make_client, monkeypatch):
    host, bo, cy = make_client(), make_client(), make_client()
    code = await create_room(host)
    await join_room(bo, code, "Bo")
    await join_room(cy, code, "Cy")

    tacos = await add_option(bo, code, "Tacos")
    sushi = await add_option(cy, code, "Sushi")
    pizza = await add_option(host, code, "Pizza")

    response = await cy.post(f"/api/rooms/{code}/options/{tacos['id']}/veto")
    assert response.status_code == 200
    assert response.json() == {"message": "Option vetoed successfully"}

    monkeypatch.setattr(room_service_module.secrets, "randbelow", lambda n: 0)
    response = await host.post(f"/api/rooms/{code}/spin")
    assert response.status_code == 200
    body = response.json()
    assert body["winner"] == {
        "id": sushi["id"],
        "text": "Sushi",
        "participant_id": sushi["participant_id"],
        "participant_name": "Cy",
    }
    assert body["winnerIndex"] == 0
    assert body["totalOptions"] == 2
    assert [o["id"] for o in body["allOptions"]] == [sushi["id"], pizza["id"]]
    assert body["message"] == "Spin complete!"

    state = (await bo.get(f"/api/rooms/{code}")).json()
    assert state["room"]["status"] == "decided"
    assert state["room"]["winner_option_id"] == sushi["id"]
    assert [p["name"] for p in state["participants"]] == ["Al", "Bo", "Cy"]
    assert [o["is_vetoed"] for o in state["options"]] == [True, False, False]

    recent = (await bo.get("/api/recent")).json()
    assert recent[0]["code"] == code
    assert recent[0]["winner_text"] == "Sushi"
    assert recent[0]["winner_participant"] == "Cy"
    assert recent[0]["participant_count"] == 3


async def test_room_state_is_public(make_client):
    code = await create_room(make_client())

    response = await make_client().get(f"/api/rooms/{code}")

    assert response.status_code == 200
    assert response.json()["room"]["code"] == code


@pytest.mark.parametrize(
    "payload, error",
    [
        ({"category": "drink", "hostName": "Al"}, "VAL_005"),
        ({"category": "eat", "hostName": "   "}, "VAL_003"),
        ({"category": "eat", "hostName": "x" * 51}, "VAL_003"),
    ],
)
async def test_create_room_validation(client, payload, error):
    response = await client.post("/api/rooms", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == error
    assert response.json()["success"] is False


async def test_malformed_body(client):
    response = await client.post("/api/rooms", json={"category": "eat"})

    assert response.status_code == 422
    assert response.json()["error"] == "VAL_001"


async def test_room_code_errors(client):
    response = await client.get("/api/rooms/abc123")
    assert response.status_code == 400
    assert response.json()["error"] == "VAL_002"

    response = await client.get("/api/rooms/ZZZZZZ")
    assert response.status_code == 404
    assert response.json()["error"] == "ROOM_001"


async def test_duplicate_name(make_client):
    code = await create_room(make_client(), host_name="Al")

    response = await make_client().post(f"/api/rooms/{code}/join", json={"name": "Al"})

    assert response.status_code == 400
    assert response.json()["error"] == "ROOM_004"


async def test_actions_require_session(client):
    code = await create_room(client)
    client.cookies.clear()

    response = await client.post(f"/api/rooms/{code}/options", json={"text": "Tacos"})

    assert response.status_code == 401
    assert response.json()["error"] == "AUTH_001"


async def test_unknown_session_is_rejected(make_client):
    code = await create_room(make_client())
    stranger = make_client()
    stranger.cookies.set("spin_session", "0" * 64)

    response = await stranger.post(f"/api/rooms/{code}/spin")

    assert response.status_code == 401
    assert response.json()["error"] == "AUTH_002"


async def test_logout(client):
    code = await create_room(client)

    response = await client.post("/api/session/logout")
    assert response.status_code == 204
    assert "spin_session" not in client.cookies

    response = await client.post(f"/api/rooms/{code}/options", json={"text": "Tacos"})
    assert response.status_code == 401


async def test_session_is_scoped_to_its_room(make_client):
    host = make_client()
    code = await create_room(host)
    await create_room(host, host_name="Zed")  # cookie now belongs to the second room

    response = await host.post(f"/api/rooms/{code}/options", json={"text": "Tacos"})

    assert response.status_code == 404
    assert response.json()["error"] == "ROOM_001"
    assert response.json()["message"] == "Room not found or access denied"


async def test_option_and_veto_errors(make_client):
    host, bo = make_client(), make_client()
    code = await create_room(host)
    await join_room(bo, code, "Bo")

    for text in ("Tacos", "Sushi", "Pizza"):
        await add_option(bo, code, text)
    response = await bo.post(f"/api/rooms/{code}/options", json={"text": "Ramen"})
    assert response.json()["error"] == "OPT_002"

    response = await bo.post(f"/api/rooms/{code}/options", json={"text": ""})
    assert response.json()["error"] == "VAL_004"

    state = (await bo.get(f"/api/rooms/{code}")).json()
    own = state["options"][0]["id"]
    response = await bo.post(f"/api/rooms/{code}/options/{own}/veto")
    assert response.json()["error"] == "OPT_003"

    response = await bo.post(f"/api/rooms/{code}/options/999999/veto")
    assert response.status_code == 404
    assert response.json()["error"] == "OPT_001"


async def test_spin_errors(make_client):
    host, bo = make_client(), make_client()
    code = await create_room(host)
    await join_room(bo, code, "Bo")
    await add_option(bo, code, "Tacos")

    response = await host.post(f"/api/rooms/{code}/spin")
    assert response.status_code == 400
    assert response.json()["error"] == "ROOM_005"

    await add_option(host, code, "Sushi")
    response = await bo.post(f"/api/rooms/{code}/spin")
    assert response.status_code == 403
    assert response.json()["error"] == "AUTH_003"

    assert (await host.post(f"/api/rooms/{code}/spin")).status_code == 200
    response = await host.post(f"/api/rooms/{code}/spin")
    assert response.json()["error"] == "ROOM_003"

    response = await bo.post(f"/api/rooms/{code}/options", json={"text": "Pizza"})
    assert response.json()["error"] == "ROOM_002"


@pytest.mark.parametrize("rate_limiter", [RateLimiter()])
async def test_create_room_is_rate_limited(client, rate_limiter):
    for _ in range(5):
        await create_room(client)

    response = await client.post("/api/rooms", json={"category": "eat", "hostName": "Al"})

    assert response.status_code == 429
    assert response.json()["error"] == "GEN_003"
    assert response.headers["X-RateLimit-Limit"] == "5"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert response.headers["Retry-After"] == "60"


@pytest.mark.parametrize("rate_limiter", [RateLimiter()])
async def test_rate_limit_is_per_client(make_client, rate_limiter):
    client = make_client()
    for _ in range(5):
        await create_room(client)

    response = await client.post(
        "/api/rooms",
        json={"category": "eat", "hostName": "Al"},
        headers={"X-Forwarded-For": "198.51.100.20"},
    )

    assert response.status_code == 201


@pytest.mark.parametrize("rate_limiter", [RateLimiter()])
async def test_rate_limit_applies_before_session_check(make_client, rate_limiter):
    code = await create_room(make_client())
    stranger = make_client()

    for _ in range(5):
        response = await stranger.post(f"/api/rooms/{code}/spin")
        assert response.status_code == 401

    response = await stranger.post(f"/api/rooms/{code}/spin")

    assert response.status_code == 429
    assert response.json()["error"] == "GEN_003"
