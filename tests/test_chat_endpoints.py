import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from switchboard.config import Settings
from switchboard.core import build_core, get_core
from switchboard.main import app
from switchboard.services import messages


@pytest.fixture
def core(make_provider):
    return build_core(Settings(_env_file=None, sweeper_enabled=False), provider=make_provider())


@pytest.fixture
def client(core):
    app.dependency_overrides[get_core] = lambda: core
    yield TestClient(app)
    app.dependency_overrides.clear()


def open_session(client, customer_id="cust-1", **fields):
    response = client.post("/sessions", json={"customer_id": customer_id, **fields})
    assert response.status_code == 200
    return response.json()


class TestSessions:
    def test_new_session_starts_at_hub_with_greeting(self, client):
        data = open_session(client, department="sales", customer_name="Ana")

        assert data["resumed"] is False
        assert data["conversation"]["department"] == "general"
        assert data["opening"]["response_text"].startswith("Hi Ana! I'm Alex")
        assert "I see you're looking for" in data["opening"]["response_text"]

    def test_reconnect_resumes(self, client):
        first = open_session(client)
        second = open_session(client)

        assert second["resumed"] is True
        assert second["conversation_id"] == first["conversation_id"]
        assert second["opening"] is None

    def test_close_session(self, client, core):
        data = open_session(client)

        response = client.delete(f"/sessions/{data['conversation_id']}")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert core.store.get(data["conversation_id"]) is None

    def test_close_unknown_session(self, client):
        response = client.delete("/sessions/missing")
        assert response.status_code == 404


class TestMessageEndpoint:
    def test_routes_to_specialist(self, client):
        conversation_id = open_session(client)["conversation_id"]

        response = client.post(
            "/message",
            json={"conversation_id": conversation_id, "content": "My lights won't turn on"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "transfer"
        assert data["department"] == "technical"
        assert data["transferred"] is True

    def test_hub_reply(self, client):
        conversation_id = open_session(client)["conversation_id"]

        response = client.post("/message", json={"conversation_id": conversation_id, "content": "hello"})

        assert response.json()["response_text"] == "Happy to help!"

    def test_missing_content_is_rejected(self, client):
        response = client.post("/message", json={"conversation_id": "conv-1"})
        assert response.status_code == 422

    def test_unconfigured_ai_goes_to_human(self, make_provider):
        core = build_core(Settings(_env_file=None), provider=make_provider(ready=False))
        app.dependency_overrides[get_core] = lambda: core
        try:
            client = TestClient(app)
            conversation_id = open_session(client)["conversation_id"]
            response = client.post("/message", json={"conversation_id": conversation_id, "content": "hello"})
        finally:
            app.dependency_overrides.clear()

        data = response.json()
        assert data["needs_human_agent"] is True
        assert data["response_text"] == messages.AI_UNAVAILABLE


class TestFlowEndpoints:
    @pytest.fixture
    def flow_client(self, tmp_path, make_provider, sample_script):
        path = tmp_path / "flow.json"
        path.write_text(json.dumps(sample_script))
        core = build_core(Settings(_env_file=None, flow_script_file=str(path)), provider=make_provider())
        app.dependency_overrides[get_core] = lambda: core
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_session_opens_with_flow(self, flow_client):
        data = open_session(flow_client)

        assert data["opening"]["action"] == "flow"
        assert data["opening"]["choices"]["step_id"] == "menu"
        assert data["conversation"]["step"] == "menu"

    def test_choice_and_rating(self, flow_client):
        conversation_id = open_session(flow_client)["conversation_id"]

        choice = flow_client.post(
            "/flow/choice",
            json={"conversation_id": conversation_id, "step_id": "menu", "value": "rate"},
        ).json()
        assert choice["rating"]["scale"] == 5

        rating = flow_client.post(
            "/flow/rating",
            json={"conversation_id": conversation_id, "step_id": "csat", "score": 4},
        ).json()
        assert rating["response_text"] == messages.FLOW_RATING_THANKS

    def test_stale_choice_is_ignored(self, flow_client):
        conversation_id = open_session(flow_client)["conversation_id"]

        response = flow_client.post(
            "/flow/choice",
            json={"conversation_id": conversation_id, "step_id": "csat", "value": "sales"},
        )

        assert response.status_code == 200
        assert response.json()["action"] == "ignored"


class TestHealth:
    def test_health(self, client):
        open_session(client)

        data = client.get("/health").json()

        assert data["status"] == "ok"
        assert data["ai_ready"] is True
        assert data["flow_enabled"] is False
        assert data["conversations"] == 1

    def test_health_reports_missing_ai(self, make_provider):
        core = build_core(Settings(_env_file=None), provider=make_provider(ready=False))
        with patch.dict(app.dependency_overrides, {get_core: lambda: core}):
            data = TestClient(app).get("/health").json()

        assert data["ai_ready"] is False
