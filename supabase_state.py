import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class SupabaseConfigurationError(RuntimeError):
    """Raised when Supabase credentials are missing."""


@dataclass
class StoredAuthTokens:
    user_id: str
    access_token: str
    refresh_token: str
    updated_at: Optional[str] = None


@dataclass
class CuratedNewsletter:
    email_pattern: str
    name: Optional[str] = None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseStateStore:
    # --- Gmail OAuth tokens ------------------------------------------------

    def get_auth_tokens(self, user_id: str) -> Optional[StoredAuthTokens]:
        """Return the stored Gmail tokens for the user, if any."""
        raise NotImplementedError

    def update_access_token(self, user_id: str, access_token: str) -> None:
        """Replace the stored access token and bump ``updated_at``."""
        raise NotImplementedError

    # --- Curated newsletter list -------------------------------------------

    def list_curated_newsletters(self) -> List[CuratedNewsletter]:
        """Return active curated newsletter patterns."""
        raise NotImplementedError


class SupabaseStateStore(BaseStateStore):
    """
    Minimal Supabase REST client for the Gmail token and curated newsletter tables.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url or os.getenv("SUPABASE_URL")
        self.key = service_role_key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if not self.url or not self.key:
            raise SupabaseConfigurationError("Supabase URL and service role key must be configured.")
        self.url = self.url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self._headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
        }

    def _rest(self, path: str) -> str:
        return f"{self.url}/rest/v1/{path.lstrip('/')}"

    def get_auth_tokens(self, user_id: str) -> Optional[StoredAuthTokens]:
        try:
            response = self.session.get(
                self._rest("auth_tokens"),
                params={"user_id": f"eq.{user_id}", "select": "access_token,refresh_token,updated_at", "limit": 1},
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            rows = response.json() or []
        except (requests.RequestException, ValueError) as exc:
            # A missing table, an unreachable project or a garbled body reads the same as "no tokens".
            logger.warning("Failed to load Gmail tokens for %s: %s", user_id, exc)
            return None
        if not rows:
            return None
        record = rows[0]
        access_token = record.get("access_token")
        refresh_token = record.get("refresh_token")
        if not access_token and not refresh_token:
            return None
        return StoredAuthTokens(
            user_id=user_id,
            access_token=access_token or "",
            refresh_token=refresh_token or "",
            updated_at=record.get("updated_at"),
        )

    def update_access_token(self, user_id: str, access_token: str) -> None:
        payload = {"access_token": access_token, "updated_at": _utc_now_iso()}
        response = self.session.patch(
            self._rest("auth_tokens"),
            params={"user_id": f"eq.{user_id}"},
            headers={**self._headers, "Prefer": "return=minimal"},
            data=json.dumps(payload),
            timeout=self.timeout,
        )
        response.raise_for_status()

    def list_curated_newsletters(self) -> List[CuratedNewsletter]:
        try:
            response = self.session.get(
                self._rest("newsletters_curated"),
                params={"select": "email_pattern,name", "is_active": "eq.true"},
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            rows = response.json() or []
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Failed to load curated newsletters: %s", exc)
            return []
        results: List[CuratedNewsletter] = []
        for row in rows:
            pattern = row.get("email_pattern")
            if not pattern:
                continue
            results.append(CuratedNewsletter(email_pattern=pattern, name=row.get("name")))
        return results

    def list_auth_token_rows(self) -> List[Dict[str, Optional[str]]]:
        """Operator helper: every stored token row with secrets left in place."""
        response = self.session.get(
            self._rest("auth_tokens"),
            params={"select": "user_id,access_token,refresh_token,updated_at"},
            headers=self._headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json() or []


class NullStateStore(BaseStateStore):
    """
    In-memory fallback when Supabase is not yet configured.
    """

    def __init__(
        self,
        tokens: Optional[Dict[str, StoredAuthTokens]] = None,
        curated: Optional[List[CuratedNewsletter]] = None,
    ) -> None:
        self.tokens: Dict[str, StoredAuthTokens] = dict(tokens or {})
        self.curated: List[CuratedNewsletter] = list(curated or [])
        self.token_updates: List[Dict[str, str]] = []

    def get_auth_tokens(self, user_id: str) -> Optional[StoredAuthTokens]:
        return self.tokens.get(user_id)

    def update_access_token(self, user_id: str, access_token: str) -> None:
        updated_at = _utc_now_iso()
        self.token_updates.append({"user_id": user_id, "access_token": access_token, "updated_at": updated_at})
        existing = self.tokens.get(user_id)
        if existing:
            existing.access_token = access_token
            existing.updated_at = updated_at

    def list_curated_newsletters(self) -> List[CuratedNewsletter]:
        return list(self.curated)


def get_state_store(url: Optional[str] = None, service_role_key: Optional[str] = None) -> BaseStateStore:
    try:
        return SupabaseStateStore(url=url, service_role_key=service_role_key)
    except SupabaseConfigurationError:
        return NullStateStore()
