"""Shared fixtures for tests."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
import requests

from gmail_client import GmailClient, GmailCredentials
from supabase_state import NullStateStore, StoredAuthTokens

_REASONS = {
    200: "OK",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
}


class FakeResponse:
    """Just enough of requests.Response for the code under test."""

    def __init__(self, status_code: int = 200, body: Any = None, reason: Optional[str] = None) -> None:
        self.status_code = status_code
        self._body = body
        self.reason = reason if reason is not None else _REASONS.get(status_code, "")
        self.headers = {"Content-Type": "application/json"}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def content(self) -> bytes:
        if self._body is None:
            return b""
        return json.dumps(self._body).encode("utf-8")

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} {self.reason}", response=self)


class FakeSession:
    """
    Records requests and replays queued responses per HTTP method.

    A queued Exception instance is raised instead of returned.
    """

    def __init__(self) -> None:
        self.queued: Dict[str, List[Any]] = {"GET": [], "POST": [], "PATCH": []}
        self.calls: List[Dict[str, Any]] = []

    def queue(self, method: str, *responses: Any) -> "FakeSession":
        self.queued[method.upper()].extend(responses)
        return self

    def calls_for(self, method: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["method"] == method.upper()]

    def _dispatch(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "url": url, **kwargs})
        pending = self.queued[method]
        if not pending:
            raise AssertionError(f"Unexpected {method} {url}")
        result = pending.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url: str, **kwargs: Any) -> Any:
        return self._dispatch("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self._dispatch("POST", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> Any:
        return self._dispatch("PATCH", url, **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        return self._dispatch(method.upper(), url, **kwargs)

    def close(self) -> None:
        pass


def metadata_message(message_id: str, sender: str, subject: str = "Hello", date: str = "Sat, 17 Oct 2026 09:00:00 +0000") -> Dict[str, Any]:
    return {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "labelIds": ["INBOX"],
        "snippet": "",
        "payload": {
            "headers": [
                {"name": "From", "value": sender},
                {"name": "Subject", "value": subject},
                {"name": "Date", "value": date},
            ]
        },
    }


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def stored_tokens() -> StoredAuthTokens:
    return StoredAuthTokens(user_id="user-123", access_token="old-access", refresh_token="refresh-abc")


@pytest.fixture
def state_store(stored_tokens: StoredAuthTokens) -> NullStateStore:
    return NullStateStore(tokens={stored_tokens.user_id: stored_tokens})


@pytest.fixture
def credentials(stored_tokens: StoredAuthTokens) -> GmailCredentials:
    return GmailCredentials(
        user_id=stored_tokens.user_id,
        access_token=stored_tokens.access_token,
        refresh_token=stored_tokens.refresh_token,
    )


@pytest.fixture
def gmail_client(credentials: GmailCredentials, state_store: NullStateStore, fake_session: FakeSession) -> GmailClient:
    return GmailClient(
        credentials,
        state_store=state_store,
        client_id="client-id",
        client_secret="client-secret",
        session=fake_session,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
