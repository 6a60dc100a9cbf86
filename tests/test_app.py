"""Endpoint tests for the Gmail integration probe."""

import pytest
from fastapi.testclient import TestClient

import app as probe_app
from conftest import FakeResponse, FakeSession, metadata_message
from gmail_client import GmailClient
from supabase_auth import AuthenticatedUser, AuthenticationError
from supabase_state import NullStateStore

AUTH = {"Authorization": "Bearer user-jwt"}


class StubAuthClient:
    def __init__(self, valid_token="user-jwt", user_id="user-123"):
        self.valid_token = valid_token
        self.user_id = user_id

    def get_user(self, jwt):
        if jwt != self.valid_token:
            raise AuthenticationError("Invalid or expired token")
        return AuthenticatedUser(id=self.user_id, email="user@example.com")


@pytest.fixture
def gmail_session():
    return FakeSession()


@pytest.fixture
def client(state_store, gmail_session):
    def factory(credentials, store):
        return GmailClient(
            credentials,
            state_store=store,
            client_id="client-id",
            client_secret="client-secret",
            session=gmail_session,
        )

    probe_app.app.dependency_overrides[probe_app.get_store] = lambda: state_store
    probe_app.app.dependency_overrides[probe_app.get_auth_client] = lambda: StubAuthClient()
    probe_app.app.dependency_overrides[probe_app.get_gmail_client_factory] = lambda: factory
    with TestClient(probe_app.app) as test_client:
        yield test_client
    probe_app.app.dependency_overrides.clear()


def test_missing_stored_tokens_asks_for_reauth(client):
    probe_app.app.dependency_overrides[probe_app.get_store] = lambda: NullStateStore()

    response = client.post("/test-gmail-integration", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "error": "No Gmail tokens found. Please reconnect your Gmail account.",
        "needsReauth": True,
    }


def test_missing_authorization_header_is_500(client):
    response = client.post("/test-gmail-integration")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Missing authorization header"
    assert "AuthenticationError" in body["stack"]


def test_invalid_identity_token_is_500(client):
    response = client.post("/test-gmail-integration", headers={"Authorization": "Bearer forged"})

    assert response.status_code == 500
    assert response.json()["error"] == "Invalid or expired token"


def test_non_bearer_authorization_is_rejected_as_invalid_token(client):
    response = client.post("/test-gmail-integration", headers={"Authorization": "Token user-jwt"})

    assert response.status_code == 500
    assert response.json()["error"] == "Invalid or expired token"


def test_full_probe_with_token_refresh(client, gmail_session, state_store):
    gmail_session.queue(
        "GET",
        FakeResponse(401),
        FakeResponse(200, {"messages": [{"id": "m1", "threadId": "t1"}, {"id": "m2", "threadId": "t2"}]}),
        FakeResponse(200, metadata_message("m1", "Morning Brew <crew@morningbrew.com>")),
        FakeResponse(200, metadata_message("m2", "Alice <alice@example.com>")),
    )
    gmail_session.queue("POST", FakeResponse(200, {"access_token": "new-access"}))

    response = client.post("/functions/v1/test-gmail-integration", headers=AUTH)

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    body = response.json()
    assert body["success"] is True
    assert body["stats"]["totalEmails"] == 2
    assert body["stats"]["processedEmails"] == 2
    assert body["stats"]["detectedNewsletters"] == 1
    assert body["detectedNewsletters"][0]["email"] == "crew@morningbrew.com"
    assert len(state_store.token_updates) == 1
    assert state_store.tokens["user-123"].access_token == "new-access"


def test_listing_failure_is_500(client, gmail_session):
    gmail_session.queue("GET", FakeResponse(403))

    response = client.get("/test-gmail-integration", headers=AUTH)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Gmail API error: 403 Forbidden"


def test_no_recent_emails(client, gmail_session):
    gmail_session.queue("GET", FakeResponse(200, {"resultSizeEstimate": 0}))

    response = client.post("/test-gmail-integration", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["message"] == "Gmail connection successful, but no recent emails found."


def test_options_returns_ok(client):
    response = client.options("/test-gmail-integration")

    assert response.status_code == 200
    assert response.text == "ok"
    assert response.headers["access-control-allow-headers"] == "authorization, x-client-info, apikey, content-type"


def test_health_reports_store_mode(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["supabase_mode"] == "NullStateStore"
    assert response.json()["supabase_auth_configured"] is True
