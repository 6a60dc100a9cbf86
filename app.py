from __future__ import annotations

import logging
import os
import traceback
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from gmail_client import DEFAULT_TIMEOUT, GmailClient, GmailCredentials
from integration_probe import GmailIntegrationProbe
from supabase_auth import AuthenticatedUser, AuthenticationError, SupabaseAuthClient
from supabase_state import BaseStateStore, SupabaseConfigurationError, get_state_store

try:
    import config  # type: ignore
except ImportError:  # pragma: no cover - optional configuration module
    config = None  # type: ignore


def _config_value(attr: str, env_name: str, default=None):
    if config and hasattr(config, attr):
        value = getattr(config, attr)
        if value not in (None, "", []):
            return value
    env_value = os.getenv(env_name)
    if env_value not in (None, ""):
        return env_value
    return default


logger = logging.getLogger(__name__)

PROBE_PATH = "/test-gmail-integration"
FUNCTIONS_PROBE_PATH = "/functions/v1/test-gmail-integration"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}
REAUTH_MESSAGE = "No Gmail tokens found. Please reconnect your Gmail account."

GmailClientFactory = Callable[[GmailCredentials, BaseStateStore], GmailClient]


def _build_auth_client() -> Optional[SupabaseAuthClient]:
    try:
        return SupabaseAuthClient(
            url=_config_value("SUPABASE_URL", "SUPABASE_URL"),
            service_role_key=_config_value("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
        )
    except SupabaseConfigurationError:
        return None


state_store: BaseStateStore = get_state_store(
    url=_config_value("SUPABASE_URL", "SUPABASE_URL"),
    service_role_key=_config_value("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
)
auth_client = _build_auth_client()
google_client_id = _config_value("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_ID")
google_client_secret = _config_value("GOOGLE_CLIENT_SECRET", "GOOGLE_CLIENT_SECRET")
gmail_timeout = int(_config_value("GMAIL_API_TIMEOUT", "GMAIL_API_TIMEOUT", DEFAULT_TIMEOUT))

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


def build_gmail_client(credentials: GmailCredentials, store: BaseStateStore) -> GmailClient:
    return GmailClient(
        credentials,
        state_store=store,
        client_id=google_client_id,
        client_secret=google_client_secret,
        timeout=gmail_timeout,
    )


# -----------------------------
# Dependencies
# -----------------------------

def get_store() -> BaseStateStore:
    return state_store


def get_auth_client() -> Optional[SupabaseAuthClient]:
    return auth_client


def get_gmail_client_factory() -> GmailClientFactory:
    return build_gmail_client


def _authenticate(authorization: Optional[str], client: Optional[SupabaseAuthClient]) -> AuthenticatedUser:
    if not authorization:
        raise AuthenticationError("Missing authorization header")
    if client is None:
        raise AuthenticationError("Supabase auth is not configured.")
    # Any other scheme is passed through untouched and rejected by Supabase.
    token = authorization.replace("Bearer ", "", 1).strip()
    return client.get_user(token)


def probe_user(user_id: str, store: BaseStateStore, client_factory: GmailClientFactory) -> Dict[str, Any]:
    """
    Run the Gmail integration probe for one user and return the response body.
    """
    tokens = store.get_auth_tokens(user_id)
    if tokens is None:
        return {"success": False, "error": REAUTH_MESSAGE, "needsReauth": True}

    gmail = client_factory(
        GmailCredentials(
            user_id=user_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        ),
        store,
    )
    report = GmailIntegrationProbe(gmail, state_store=store).run()
    return report.to_payload()


def _json(content: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


# -----------------------------
# Routes
# -----------------------------

@app.options(PROBE_PATH)
@app.options(FUNCTIONS_PROBE_PATH)
def probe_options():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@app.api_route(PROBE_PATH, methods=["GET", "POST"])
@app.api_route(FUNCTIONS_PROBE_PATH, methods=["GET", "POST"])
def test_gmail_integration(
    authorization: Optional[str] = Header(default=None),
    store: BaseStateStore = Depends(get_store),
    client: Optional[SupabaseAuthClient] = Depends(get_auth_client),
    client_factory: GmailClientFactory = Depends(get_gmail_client_factory),
):
    try:
        user = _authenticate(authorization, client)
        logger.info("Testing Gmail integration for user: %s", user.id)
        return _json(probe_user(user.id, store, client_factory))
    except Exception as exc:
        logger.exception("Gmail integration test failed")
        return _json(
            {"success": False, "error": str(exc), "stack": traceback.format_exc()},
            status_code=500,
        )


@app.get("/healthz")
@app.get("/health")
def healthz(
    store: BaseStateStore = Depends(get_store),
    client: Optional[SupabaseAuthClient] = Depends(get_auth_client),
):
    return {
        "supabase_mode": store.__class__.__name__,
        "supabase_auth_configured": client is not None,
        "google_client_configured": bool(google_client_id and google_client_secret),
    }
