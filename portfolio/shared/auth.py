"""
Admin Authentication

Admin endpoints accept either:
- an X-API-Key header matching INTERNAL_API_KEY (internal scripts), or
- a Bearer session token issued by the hosted auth provider (Supabase Auth),
  validated by asking the provider who the token belongs to.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import requests
from fastapi import Depends, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from portfolio.shared.config import Settings, get_settings
from portfolio.shared.errors import Unauthorized

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AdminIdentity:
    """Who made an admin request."""
    user_id: str
    email: Optional[str] = None
    via: str = "session"


class SessionValidator:
    """Interface for checking a session token against the auth provider."""

    def validate(self, token: str) -> Optional[AdminIdentity]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class SupabaseSessionValidator(SessionValidator):
    """Validates access tokens with Supabase Auth (`GET /auth/v1/user`)."""

    def __init__(self, supabase_url: str, anon_key: str, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.user_url = f"{supabase_url.rstrip('/')}/auth/v1/user"
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def validate(self, token: str) -> Optional[AdminIdentity]:
        headers = {"apikey": self.anon_key, "Authorization": f"Bearer {token}"}
        try:
            response = self.session.get(self.user_url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Session validation request failed: {e}")
            return None

        if response.status_code != 200:
            return None

        user = response.json()
        return AdminIdentity(user_id=user.get("id", ""), email=user.get("email"))

    def close(self) -> None:
        self.session.close()


def get_session_validator(settings: Settings = Depends(get_settings)) -> Iterator[Optional[SessionValidator]]:
    if not settings.supabase_url or not settings.supabase_anon_key:
        yield None
        return
    validator = SupabaseSessionValidator(settings.supabase_url, settings.supabase_anon_key)
    try:
        yield validator
    finally:
        validator.close()


def require_admin(
    api_key: Optional[str] = Security(api_key_header),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    validator: Optional[SessionValidator] = Depends(get_session_validator),
    settings: Settings = Depends(get_settings),
) -> AdminIdentity:
    """
    Dependency guarding admin endpoints.

    Usage in endpoints:
    @router.delete("/{project_id}")
    def delete(project_id: str, admin: AdminIdentity = Depends(require_admin)):
        ...
    """
    if not settings.internal_api_key and validator is None:
        if settings.is_production:
            raise RuntimeError(
                "INTERNAL_API_KEY or SUPABASE_URL/SUPABASE_ANON_KEY must be set in production. "
                "Generate a key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
            )
        logger.warning(
            "Admin authentication disabled - running in development mode. "
            "Set INTERNAL_API_KEY or Supabase auth variables for security."
        )
        return AdminIdentity(user_id="development", via="disabled")

    # Use constant-time comparison to prevent timing attacks
    if api_key and settings.internal_api_key:
        if hmac.compare_digest(api_key, settings.internal_api_key):
            return AdminIdentity(user_id="internal", via="api_key")
        raise Unauthorized()

    if credentials and validator is not None:
        identity = validator.validate(credentials.credentials)
        if identity is None:
            raise Unauthorized()
        if settings.admin_emails and (identity.email or "").lower() not in settings.admin_emails:
            logger.warning(f"Rejected non-admin user {identity.user_id}")
            raise Unauthorized()
        return identity

    raise Unauthorized()
