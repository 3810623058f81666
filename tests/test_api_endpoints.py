import pytest
from fastapi.testclient import TestClient

from app.api import freshchat as freshchat_api
from app.api import health, webhooks
from app.main import app
from app.schemas import OwnershipState
from app.utils import ExternalReadFailure
from app.utils.webhook_history import WebhookHistory
from tests.conftest import BOT_AGENT_ID


@pytest.fixture
def test_client(monkeypatch, store, dispatcher, mock_freshchat, mock_generator, settings):
    """TestClient wired to in-memory state and mocked Freshchat / generation backends."""
    monkeypatch.setattr(webhooks, "store", store)
    monkeypatch.setattr(webhooks, "dispatcher", dispatcher)
    monkeypatch.setattr(webhooks, "generator", mock_generator)
    monkeypatch.setattr(webhooks, "settings", settings)
    monkeypatch.setattr(webhooks, "webhook_history", WebhookHistory(max_size=3))
    monkeypatch.setattr(freshchat_api, "freshchat", mock_freshchat)
    monkeypatch.setattr(health, "freshchat", mock_freshchat)
    return TestClient(app)


def test_webhook_acknowledges_and_processes(test_client, mock_generator, mock_freshchat, store, user_message_factory):
    response = test_client.post("/api/v1/freshchat-webhook", json=user_message_factory(text="Hello"))

    assert response.status_code == 200
    assert response.json() == {"success": True}
    mock_generator.respond.assert_awaited_once_with(None, "Hello")
    mock_freshchat.send_message.assert_awaited_once()
    assert store.get("conv-1").session_handle == "thread_1"


def test_webhook_acknowledges_processing_failures(test_client, mock_freshchat, user_message_factory):
    mock_freshchat.get_assignee.side_effect = RuntimeError("unexpected")

    response = test_client.post("/api/v1/freshchat-webhook", json=user_message_factory())

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_webhook_acknowledges_garbage(test_client):
    response = test_client.post(
        "/api/v1/freshchat-webhook", content=b"not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_debug_webhooks_keeps_most_recent(test_client):
    for i in range(5):
        test_client.post("/api/v1/freshchat-webhook", json={"action": "ping", "n": i})

    data = test_client.get("/api/v1/debug/webhooks").json()

    assert data["count"] == 3
    assert [entry["payload"]["n"] for entry in data["webhooks"]] == [4, 3, 2]


def test_debug_state_and_escalated(test_client, store):
    store.set_state("c-1", OwnershipState.WITH_HUMAN)
    store.set_session_handle("c-2", "thread_2")

    state = test_client.get("/api/v1/debug/state").json()
    escalated = test_client.get("/api/v1/escalated").json()

    assert state["escalated_conversations"] == ["c-1"]
    assert state["session_handles"] == {"c-2": "thread_2"}
    assert state["bot_agent_id"] == BOT_AGENT_ID
    assert escalated == {"escalated": ["c-1"], "count": 1, "active_sessions": 1}


def test_force_return_to_bot(test_client, store, mock_freshchat):
    store.set_state("c-1", OwnershipState.WITH_HUMAN)

    data = test_client.post("/api/v1/force-return-to-bot/c-1").json()

    assert data["success"] and data["reassigned"] and data["message_sent"]
    assert not store.contains("c-1")
    mock_freshchat.assign_conversation.assert_awaited_once_with("c-1", BOT_AGENT_ID)


def test_return_to_bot_without_message(test_client, store, mock_freshchat):
    store.set_state("c-1", OwnershipState.WITH_HUMAN)

    data = test_client.post("/api/v1/return-to-bot/c-1", params={"send_message": "false"}).json()

    assert data["success"]
    assert not store.is_escalated("c-1")
    mock_freshchat.send_message.assert_not_awaited()


def test_reset_escalation(test_client, store):
    store.set_state("c-1", OwnershipState.WITH_HUMAN)

    data = test_client.post("/api/v1/reset-escalation/c-1").json()

    assert data == {"success": True, "conversation_id": "c-1", "was_tracked": True}
    assert not store.contains("c-1")


def test_test_message_runs_pipeline(test_client, mock_generator):
    response = test_client.post("/api/v1/test-message", json={"conversation_id": "c-5", "message": "Ping"})

    assert response.status_code == 200
    data = response.json()
    assert data["responded"] is True
    assert data["reply_preview"] == "Hello! How can I help?"
    mock_generator.respond.assert_awaited_once_with(None, "Ping")


def test_test_message_validation(test_client):
    response = test_client.post("/api/v1/test-message", json={"conversation_id": "c-5"})

    assert response.status_code == 422


def test_list_agents(test_client):
    data = test_client.get("/api/v1/list-agents").json()

    assert data["success"] is True
    assert len(data["agents"]) == 2


def test_list_agents_platform_error(test_client, mock_freshchat):
    mock_freshchat.get_agents.side_effect = ExternalReadFailure("401", operation="list agents", status_code=401)

    response = test_client.get("/api/v1/list-agents")

    assert response.status_code == 502
    assert response.json()["detail"]["operation"] == "list agents"


def test_health(test_client, store):
    store.set_state("c-1", OwnershipState.WITH_HUMAN)

    data = test_client.get("/api/v1/health").json()

    assert data["status"] == "healthy"
    assert data["escalated_conversations"] == 1
    assert data["config"]["generation_backend"] == "mock"


def test_health_test_config(test_client, mock_generator):
    mock_generator.check_connection.side_effect = RuntimeError("bad key")

    data = test_client.get("/api/v1/health/test-config").json()

    assert data["freshchat"]["status"] == "ok"
    assert data["generation"]["status"] == "error"
    assert data["all_ok"] is False


def test_root_lists_endpoints(test_client):
    data = test_client.get("/").json()

    assert data["status"] == "running"
    assert "webhook" in data["endpoints"]
