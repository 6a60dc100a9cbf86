import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests

from supabase_state import DEFAULT_TIMEOUT, SupabaseConfigurationError

logger = logging.getLogger(__name__)


class AuthenticationError(RuntimeError):
    """Raised when the caller's Supabase access token is missing or rejected."""


@dataclass
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


class SupabaseAuthClient:
    """
    Resolves a Supabase user access token (JWT) to the user it was issued for.
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

    def get_user(self, jwt: str) -> AuthenticatedUser:
        if not jwt:
            raise AuthenticationError("Missing authorization header")
        try:
            response = self.session.get(
                f"{self.url}/auth/v1/user",
                headers={"apikey": self.key, "Authorization": f"Bearer {jwt}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthenticationError(f"Could not verify token: {exc}") from exc
        if not response.ok:
            logger.info("Supabase rejected access token: %s", response.status_code)
            raise AuthenticationError("Invalid or expired token")
        try:
            body = response.json()
        except ValueError as exc:
            raise AuthenticationError("Invalid or expired token") from exc
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            raise AuthenticationError("Invalid or expired token")
        return AuthenticatedUser(id=str(user_id), email=body.get("email"))
