"""
Thin Gmail REST client that renews its access token once on a 401.

Only the two read calls the integration probe needs are exposed:
    - list_messages: ids matching a Gmail search query
    - get_message: metadata (From/Subject/Date headers) for one message
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from pydantic import BaseModel, ConfigDict, Field

from supabase_state import BaseStateStore

logger = logging.getLogger(__name__)

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
METADATA_HEADERS: Sequence[str] = ("From", "Subject", "Date")
DEFAULT_MAX_RESULTS = 10
DEFAULT_TIMEOUT = 30


class GmailApiError(RuntimeError):
    """Raised for any non-success Gmail API response that survives the refresh path."""

    def __init__(self, status: int, status_text: str = "") -> None:
        self.status = status
        self.status_text = status_text
        super().__init__(f"Gmail API error: {status} {status_text}".rstrip())


class TokenRefreshError(RuntimeError):
    """Raised when Google's token endpoint does not hand back a new access token."""

    def __init__(self, message: str = "Failed to refresh token") -> None:
        super().__init__(message)


@dataclass
class GmailCredentials:
    """
    Per-request OAuth state. ``access_token`` is replaced in place after a refresh.
    """

    user_id: str
    access_token: str
    refresh_token: str


class _GmailModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MessageRef(_GmailModel):
    id: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")


class MessageList(_GmailModel):
    messages: List[MessageRef] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(default=None, alias="nextPageToken")
    result_size_estimate: Optional[int] = Field(default=None, alias="resultSizeEstimate")


class MessageHeader(_GmailModel):
    name: str
    value: str = ""


class MessagePayload(_GmailModel):
    headers: List[MessageHeader] = Field(default_factory=list)


class MessageDetail(_GmailModel):
    id: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    label_ids: List[str] = Field(default_factory=list, alias="labelIds")
    snippet: Optional[str] = None
    payload: Optional[MessagePayload] = None

    @property
    def headers(self) -> List[MessageHeader]:
        if self.payload is None:
            return []
        return self.payload.headers

    def header(self, name: str) -> str:
        wanted = name.lower()
        for item in self.headers:
            if item.name.lower() == wanted:
                return item.value or ""
        return ""


class GmailClient:
    """
    Gmail REST wrapper bound to one user's credentials.

    Every call carries the current access token. A 401 on the first attempt
    triggers one refresh-token exchange, persists the new access token through
    the state store, and retries the call once. Nothing is retried beyond that.
    """

    def __init__(
        self,
        credentials: GmailCredentials,
        *,
        state_store: BaseStateStore,
        client_id: Optional[str],
        client_secret: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
        api_base: str = GMAIL_API_BASE,
        token_url: str = GOOGLE_TOKEN_URL,
    ) -> None:
        self.credentials = credentials
        self.state_store = state_store
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")
        self.token_url = token_url
        # google-auth sends the refresh-token grant over the same session.
        self._auth_request = Request(session=self.session)

    # --- Public API ---------------------------------------------------------

    def list_messages(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> MessageList:
        data = self._request_json(
            f"{self.api_base}/messages",
            params={"q": query, "maxResults": max_results},
        )
        return MessageList.model_validate(data or {})

    def get_message(self, message_id: str) -> MessageDetail:
        data = self._request_json(
            f"{self.api_base}/messages/{quote(message_id, safe='')}",
            params={"format": "metadata", "metadataHeaders": list(METADATA_HEADERS)},
        )
        return MessageDetail.model_validate(data)

    def refresh_access_token(self) -> str:
        oauth_credentials = Credentials(
            token=self.credentials.access_token,
            refresh_token=self.credentials.refresh_token,
            token_uri=self.token_url,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        try:
            oauth_credentials.refresh(self._auth_request)
        except GoogleAuthError as exc:
            logger.error("Error refreshing token for %s: %s", self.credentials.user_id, exc)
            raise TokenRefreshError(f"Failed to refresh token: {exc}") from exc

        access_token = oauth_credentials.token
        self.credentials.access_token = access_token
        try:
            self.state_store.update_access_token(self.credentials.user_id, access_token)
        except requests.RequestException as exc:
            # The in-memory token is still good for the rest of this request.
            logger.warning("Refreshed token for %s could not be persisted: %s", self.credentials.user_id, exc)

        logger.info("Successfully refreshed access token for %s", self.credentials.user_id)
        return access_token

    # --- Internals ----------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credentials.access_token}",
            "Content-Type": "application/json",
        }

    def _send(self, url: str, params: Dict[str, Any]) -> requests.Response:
        return self.session.get(url, params=params, headers=self._auth_headers(), timeout=self.timeout)

    def _request_json(self, url: str, params: Dict[str, Any]) -> Any:
        response = self._send(url, params)
        if response.status_code == 401:
            logger.info("Gmail access token expired for %s, refreshing", self.credentials.user_id)
            self.refresh_access_token()
            response = self._send(url, params)
        if not response.ok:
            raise GmailApiError(response.status_code, response.reason or "")
        return response.json()
