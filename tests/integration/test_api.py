"""
Integration tests for the FastAPI surface.

Uses TestClient as a context manager so the lifespan (session startup and
teardown) runs.
"""

import pytest
from fastapi.testclient import TestClient

from agent.api import create_app
from agent.orchestrator import ConversationOrchestrator
from agent.store import InMemoryTaskStore
from inference import InferenceSessionManager, StubInferenceEngine


@pytest.fixture
def engine():
    return StubInferenceEngine(responses={"Title:": "Finish the thesis", "created the task": "Go for it!"})


@pytest.fixture
def client(engine, model_file):
    session = InferenceSessionManager(engine, str(model_file))
    orchestrator = ConversationOrchestrator(session=session, store=InMemoryTaskStore())
    with TestClient(create_app(orchestrator)) as c:
        yield c


@pytest.fixture
def degraded_client(missing_model_file):
    session = InferenceSessionManager(StubInferenceEngine(), str(missing_model_file))
    orchestrator = ConversationOrchestrator(session=session)
    with TestClient(create_app(orchestrator)) as c:
        yield c


class TestHealth:
    """Probe endpoints."""

    def test_live(self, client):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_with_model(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["model_state"] == "ready"

    def test_ready_degraded_without_model(self, degraded_client):
        response = degraded_client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["model_state"] == "not_found"


class TestModelEndpoints:
    """Session control endpoints."""

    def test_status(self, client):
        body = client.get("/model/status").json()
        assert body["state"] == "ready"
        assert body["size_mb"] >= 0

    def test_reinitialize(self, client, engine):
        response = client.post("/model/reinitialize")
        assert response.status_code == 200
        body = response.json()
        assert body["status"]["state"] == "ready"
        assert body["notice"]["type"] == "system"
        assert engine.load_calls == 2


class TestChat:
    """Conversation endpoints."""

    def test_create_task(self, client):
        response = client.post("/chat", json={"message": "create a main task: finish thesis"})
        assert response.status_code == 200
        body = response.json()
        assert body["reply"] == "Go for it!"
        assert body["messages"][-1]["type"] == "task_created"

        tasks = client.get("/tasks").json()["tasks"]
        assert len(tasks) == 1
        assert tasks[0]["title"] == "Finish the thesis"
        assert tasks[0]["type"] == "main"
        assert tasks[0]["coin_reward"] == 100

    def test_blank_message_rejected(self, client):
        response = client.post("/chat", json={"message": "   "})
        assert response.status_code == 400

    def test_missing_field_rejected(self, client):
        response = client.post("/chat", json={})
        assert response.status_code == 422

    def test_history(self, degraded_client):
        degraded_client.post("/chat", json={"message": "thanks!"})
        messages = degraded_client.get("/chat/history").json()["messages"]

        # startup notice, user turn, reply
        assert [m["type"] for m in messages] == ["system", "text", "text"]
        assert messages[1]["is_user"] is True
        assert messages[1]["text"] == "thanks!"


def test_shutdown_releases_model(engine, model_file):
    session = InferenceSessionManager(engine, str(model_file))
    orchestrator = ConversationOrchestrator(session=session)
    with TestClient(create_app(orchestrator)):
        assert session.is_ready
    assert engine.release_calls == 1
    assert not session.is_ready
