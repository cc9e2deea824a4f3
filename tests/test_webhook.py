"""Tests for the GitHub push webhook and the HTTP endpoints."""

import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from src.config import settings
from src.fsm.store import InMemoryOnboardingStore
from src.handlers.webhook import handle_push_event, verify_signature
from src.main import create_app
from src.services.intent import IntentClassifier
from src.services.onboarding_agent import OnboardingAgent


def push_payload(full_name="acme/docs", ref="refs/heads/main"):
    return {"ref": ref, "repository": {"full_name": full_name}}


def sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def sessions():
    return InMemoryOnboardingStore(
        {
            "waiting": {"fsmState": "SYNC_WAITING", "connectedRepo": "Acme/Docs"},
            "explaining": {"fsmState": "SYNC_EXPLAIN", "connectedRepo": "acme/docs"},
            "importing": {"fsmState": "DOC_ACTION_PROMPT", "connectedRepo": "acme/docs"},
            "elsewhere": {"fsmState": "SYNC_WAITING", "connectedRepo": "acme/site"},
        }
    )


@pytest.mark.unit
class TestVerifySignature:
    def test_valid_signature(self):
        body = b'{"zen": "Keep it logically awesome."}'
        assert verify_signature(body, sign(body, "s3cret"), "s3cret") is True

    def test_wrong_secret(self):
        body = b"{}"
        assert verify_signature(body, sign(body, "other"), "s3cret") is False

    def test_missing_prefix(self):
        assert verify_signature(b"{}", "deadbeef", "s3cret") is False


@pytest.mark.unit
class TestHandlePushEvent:
    @pytest.mark.asyncio
    async def test_marks_matching_sync_sessions(self, sessions):
        updated = await handle_push_event(push_payload(), sessions)

        assert updated == 2
        for user_id in ("waiting", "explaining"):
            data = await sessions.get_step_data(user_id)
            assert data["syncTriggered"] is True
            assert data["lastSyncTime"]
        assert "syncTriggered" not in await sessions.get_step_data("importing")
        assert "syncTriggered" not in await sessions.get_step_data("elsewhere")

    @pytest.mark.asyncio
    async def test_tag_push_is_ignored(self, sessions):
        assert await handle_push_event(push_payload(ref="refs/tags/v1.0"), sessions) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"ref": "refs/heads/main"}, {"repository": "acme/docs"}, []])
    async def test_malformed_payload_is_ignored(self, sessions, payload):
        assert await handle_push_event(payload, sessions) == 0

    @pytest.mark.asyncio
    async def test_invalid_session_is_skipped(self):
        store = InMemoryOnboardingStore(
            {
                "broken": {"fsmState": "NOT_A_STATE", "connectedRepo": "acme/docs"},
                "ok": {"fsmState": "SYNC_WAITING", "connectedRepo": "acme/docs"},
            }
        )
        assert await handle_push_event(push_payload(), store) == 1


@pytest.mark.integration
class TestHttpEndpoints:
    """FastAPI app wired with the in-memory store and mock collaborators."""

    @pytest.fixture
    def client_for(self, mock_github, mock_integration_dao, mock_installation_dao, mock_space_dao, registry):
        def _client(store):
            app = create_app(
                store=store,
                agent=OnboardingAgent(classifier=IntentClassifier(llm=None)),
                collaborators={
                    "github": mock_github,
                    "integration_dao": mock_integration_dao,
                    "github_installation_dao": mock_installation_dao,
                    "space_dao": mock_space_dao,
                    "registry": registry,
                },
            )
            return TestClient(app)

        return _client

    def test_health(self, client_for):
        with client_for(InMemoryOnboardingStore()) as client:
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_chat_turn_persists_state(self, client_for):
        store = InMemoryOnboardingStore()
        with client_for(store) as client:
            response = client.post("/onboarding/chat", json={"user_id": "u1", "message": "yes"})

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "GITHUB_INSTALL_PROMPT"
        assert body["events"][-1]["type"] == "done"
        assert store._records["u1"]["step_data"]["fsmState"] == "GITHUB_INSTALL_PROMPT"

    def test_chat_with_invalid_step_data_is_422(self, client_for):
        store = InMemoryOnboardingStore({"u2": {"fsmState": "BOGUS"}})
        with client_for(store) as client:
            response = client.post("/onboarding/chat", json={"user_id": "u2", "message": "yes"})
        assert response.status_code == 422

    def test_startup_backfills_missing_states(self, client_for):
        store = InMemoryOnboardingStore({"legacy": {"connectedIntegration": 7}})
        with client_for(store):
            pass
        assert store._records["legacy"]["step_data"]["fsmState"] == "REPO_SCAN_PROMPT"

    def test_push_webhook_updates_sessions(self, client_for, sessions):
        with client_for(sessions) as client:
            response = client.post(
                "/webhooks/github", json=push_payload(), headers={"X-GitHub-Event": "push"}
            )
        assert response.status_code == 200
        assert response.json() == {"updated": 2}

    def test_other_events_are_ignored(self, client_for, sessions):
        with client_for(sessions) as client:
            response = client.post("/webhooks/github", json={}, headers={"X-GitHub-Event": "ping"})
        assert response.json() == {"updated": 0, "ignored": True}

    def test_invalid_json_is_400(self, client_for, sessions):
        with client_for(sessions) as client:
            response = client.post(
                "/webhooks/github", content=b"not json", headers={"X-GitHub-Event": "push"}
            )
        assert response.status_code == 400

    def test_signature_enforced_when_secret_set(self, client_for, sessions, monkeypatch):
        monkeypatch.setattr(settings, "github_webhook_secret", "s3cret")
        body = json.dumps(push_payload()).encode()

        with client_for(sessions) as client:
            rejected = client.post(
                "/webhooks/github",
                content=body,
                headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": sign(body, "wrong")},
            )
            accepted = client.post(
                "/webhooks/github",
                content=body,
                headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": sign(body, "s3cret")},
            )

        assert rejected.status_code == 403
        assert accepted.json() == {"updated": 2}
