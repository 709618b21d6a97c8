"""
HTTP API tests
HTTP 接口测试 - 使用内存存储替换编排器依赖
"""

import asyncio
import pytest
from fastapi.testclient import TestClient

from conftest import make_room
from chameleon.api.v1.endpoints.rooms import get_orchestrator
from chameleon.main import app
from chameleon.schemas.game import GamePhase


@pytest.fixture
def client(orchestrator, store):
    asyncio.run(store.create_room(make_room(4)))
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRoomEndpoints:
    """测试房间回合接口"""

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_categories(self, client):
        response = client.get("/api/v1/categories")
        assert response.status_code == 200
        assert "Animals" in response.json()

    def test_get_room(self, client):
        response = client.get("/api/v1/rooms/room1")
        assert response.status_code == 200
        assert response.json()["state"] == GamePhase.LOBBY.value

    def test_unknown_room_is_404(self, client):
        assert client.get("/api/v1/rooms/nowhere").status_code == 404
        assert client.post("/api/v1/rooms/nowhere/start", json={}).status_code == 404

    def test_start_and_select(self, client):
        response = client.post("/api/v1/rooms/room1/start", json={"player_id": "p1"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] and body["changed"]
        assert body["room"]["state"] == GamePhase.SELECTING.value

        response = client.post("/api/v1/rooms/room1/category", json={"player_id": "p1", "category": "Animals"})
        assert response.status_code == 200
        assert response.json()["room"]["state"] == GamePhase.PRESENTING.value

    def test_non_host_start_is_400(self, client):
        response = client.post("/api/v1/rooms/room1/start", json={"player_id": "p2"})
        assert response.status_code == 400
        assert response.json()["detail"]

    def test_unknown_category_is_422(self, client):
        client.post("/api/v1/rooms/room1/start", json={"player_id": "p1"})
        response = client.post("/api/v1/rooms/room1/category", json={"player_id": "p1", "category": "Planets"})
        assert response.status_code == 422

    def test_description_turn_order(self, client):
        client.post("/api/v1/rooms/room1/start", json={"player_id": "p1"})
        room = client.post("/api/v1/rooms/room1/category",
                           json={"player_id": "p1", "category": "Sports"}).json()["room"]
        first, second = room["turn_order"][:2]

        early = client.post("/api/v1/rooms/room1/description", json={"player_id": second, "content": "ball"})
        assert early.status_code == 400

        ok = client.post("/api/v1/rooms/room1/description", json={"player_id": first, "content": "  ball  "})
        assert ok.status_code == 200
        assert ok.json()["room"]["current_turn"] == 1

        view = client.get(f"/api/v1/rooms/room1/players/{second}/view")
        assert view.status_code == 200
        assert view.json()["is_my_turn"] is True

    def test_blank_description_rejected_by_validation(self, client):
        response = client.post("/api/v1/rooms/room1/description", json={"player_id": "p1", "content": "   "})
        assert response.status_code == 422

    def test_stale_timer_expiry(self, client):
        response = client.post("/api/v1/rooms/room1/timer/expire", json={"expected_phase": "voting"})
        assert response.status_code == 200
        assert response.json()["changed"] is False

    def test_presenting_expiry_once_per_turn(self, client):
        client.post("/api/v1/rooms/room1/start", json={"player_id": "p1"})
        client.post("/api/v1/rooms/room1/category", json={"player_id": "p1", "category": "Sports"})

        missing = client.post("/api/v1/rooms/room1/timer/expire", json={"expected_phase": "presenting"})
        assert missing.status_code == 400

        body = {"expected_phase": "presenting", "expected_turn": 0}
        first = client.post("/api/v1/rooms/room1/timer/expire", json=body)
        second = client.post("/api/v1/rooms/room1/timer/expire", json=body)

        assert first.json()["changed"] is True
        assert second.json()["changed"] is False
        assert second.json()["room"]["current_turn"] == 1

    def test_settings_and_reset(self, client):
        response = client.post("/api/v1/rooms/room1/settings",
                               json={"player_id": "p1", "settings": {"max_rounds": 2}})
        assert response.status_code == 200
        assert response.json()["room"]["max_rounds"] == 2

        invalid = client.post("/api/v1/rooms/room1/settings",
                              json={"player_id": "p1", "settings": {"voting_time": 5}})
        assert invalid.status_code == 422

        client.post("/api/v1/rooms/room1/start", json={"player_id": "p1"})
        response = client.post("/api/v1/rooms/room1/reset", json={"player_id": "p1"})
        assert response.json()["room"]["state"] == GamePhase.LOBBY.value
