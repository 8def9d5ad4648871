"""
OpenLog — Identity provider helpers.

Sign-in is handled by Clerk in front of the API; the gateway forwards the
signed-in user's id in a trusted header. GitHub access tokens are fetched
from the Clerk Backend API on every call and never cached: Clerk rotates
them and a cached copy may already be revoked.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from openlog.core.config import ClerkConfig
from openlog.utils.logging import logger


@dataclass(frozen=True)
class ClerkCredentials:
    secret_key: str

    def as_headers(self) -> dict[str, str]:
        """Return the auth headers required by the Clerk Backend API."""
        return {"Authorization": f"Bearer {self.secret_key}"}


class ClerkIdentity:
    """Resolves the current user and their delegated OAuth tokens."""

    def __init__(self, config: ClerkConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self.base_url = config.api_base_url.rstrip("/")
        self.credentials = ClerkCredentials(secret_key=config.secret_key)
        self._transport = transport

    def user_id_from_headers(self, headers) -> str | None:
        user_id = (headers.get(self.config.user_header) or "").strip()
        return user_id or None

    async def get_oauth_token(self, user_id: str, provider: str | None = None) -> str | None:
        """
        Fetch a fresh access token for ``provider`` on behalf of ``user_id``.

        Returns None when the user has no linked account or Clerk is not
        reachable; both are recoverable by re-linking, so nothing is raised.
        """
        provider = provider or self.config.oauth_provider
        if not self.config.secret_key:
            logger.warning("  CLERK_SECRET_KEY not set, cannot fetch %s token", provider)
            return None

        url = f"{self.base_url}/v1/users/{user_id}/oauth_access_tokens/{provider}"
        try:
            async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
                resp = await client.get(url, headers=self.credentials.as_headers())
        except httpx.HTTPError as exc:
            logger.error("  Clerk token lookup failed for %s: %s", user_id, exc)
            return None

        if not resp.is_success:
            logger.error(
                "  Clerk token lookup returned %d for %s: %s",
                resp.status_code, user_id, resp.text[:200],
            )
            return None

        try:
            data = resp.json()
            items = data.get("data", []) if isinstance(data, dict) else data
            if not items:
                return None
            token = items[0].get("token")
        except (ValueError, AttributeError, TypeError, LookupError) as exc:
            logger.error("  Clerk token lookup for %s returned an unexpected body: %s", user_id, exc)
            return None
        return token if isinstance(token, str) and token else None
