"""
Zoho OAuth credential manager
Exchanges the long-lived refresh token for short-lived access tokens
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

from app.services.sync.errors import AuthError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credential:
    access_token: str
    expires_at: datetime

    def is_expiring(self, skew_seconds: int) -> bool:
        return _utcnow() + timedelta(seconds=skew_seconds) >= self.expires_at


class CredentialManager:
    """
    Holds the current Zoho access token for one sync engine.

    Refreshes are de-duplicated: while a refresh is in flight every caller
    awaits that same request, so the token endpoint sees one call per expiry.
    Refresh failures raise AuthError to all waiters and are not retried here.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        accounts_base_url: str,
        client_id: Optional[str],
        client_secret: Optional[str],
        refresh_token: Optional[str],
        skew_seconds: int = 60,
        timeout: float = 20.0
    ):
        self._http = http_client
        self._token_url = f"{accounts_base_url.rstrip('/')}/oauth/v2/token"
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._skew_seconds = skew_seconds
        self._timeout = timeout

        self._credential: Optional[Credential] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def is_expiring(self) -> bool:
        return self._credential is None or self._credential.is_expiring(self._skew_seconds)

    async def get_valid_credential(self) -> Credential:
        """Return a credential with at least skew_seconds of life left."""
        if self.is_expiring():
            return await self.refresh()
        return self._credential

    async def force_refresh(self, rejected_token: Optional[str] = None) -> Credential:
        """
        Refresh after the API rejected rejected_token.

        If another caller already replaced that token, the newer credential is
        returned without contacting the token endpoint again.
        """
        current = self._credential
        if (
            rejected_token is not None
            and current is not None
            and current.access_token != rejected_token
            and not current.is_expiring(self._skew_seconds)
        ):
            return current
        return await self.refresh()

    async def refresh(self) -> Credential:
        if self._inflight is None:
            task = asyncio.ensure_future(self._request_token())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        # shield: a cancelled waiter must not cancel the refresh for the others
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, task: asyncio.Task):
        if self._inflight is task:
            self._inflight = None

    async def _request_token(self) -> Credential:
        if not (self._client_id and self._client_secret and self._refresh_token):
            raise AuthError("Zoho OAuth credentials not configured (client id/secret/refresh token)")

        data = {
            "grant_type": "refresh_token",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "refresh_token": self._refresh_token,
        }

        logger.info(f"🔑 Refreshing Zoho access token via {self._token_url}")

        try:
            response = await self._http.post(self._token_url, data=data, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Zoho token refresh failed: {e.response.status_code} - {e.response.text[:500]}")
            raise AuthError(f"Token refresh rejected with status {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"❌ Zoho token endpoint unreachable: {e}")
            raise AuthError(f"Token endpoint unreachable: {e}") from e
        except json.JSONDecodeError as e:
            logger.error(f"❌ Invalid JSON from Zoho token endpoint: {e}")
            raise AuthError(f"Invalid JSON from token endpoint: {e}") from e

        # Zoho answers some failures with HTTP 200 and an "error" field
        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            error = payload.get("error") if isinstance(payload, dict) else None
            logger.error(f"❌ Zoho token response missing access_token: {error or payload}")
            raise AuthError(f"Token refresh returned no access_token: {error or 'unknown error'}")

        expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        credential = Credential(
            access_token=access_token,
            expires_at=_utcnow() + timedelta(seconds=expires_in)
        )
        self._credential = credential

        logger.info(f"✅ Zoho access token refreshed (expires in {expires_in}s)")
        return credential
