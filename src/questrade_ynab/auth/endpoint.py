"""
Questrade auth endpoint — refresh-token exchange and live token check.

Two remote calls live here:

- ``refresh()`` POSTs ``grant_type=refresh_token`` to the login server and
  returns the new token set.
- ``validate()`` GETs ``/v1/time`` on the account's API server with the cached
  bearer token to find out whether it still works, without side effects.

Neither call retries; the lifecycle manager owns all retry policy.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from questrade_ynab.auth.credential import mask_token
from questrade_ynab.config import SyncConfig
from questrade_ynab.errors import MalformedResponse, RefreshError, ValidationError

logger = logging.getLogger("questrade_ynab.auth.endpoint")


class TokenResponse(BaseModel):
    """Body of a successful refresh-token exchange."""

    access_token: str = ""
    token_type: str = "Bearer"
    expires_in: int = 0
    refresh_token: str = ""
    api_server: str = ""


def api_url(api_server: str, path: str) -> str:
    """Join the API server returned by the auth exchange with a resource path."""
    return f"{api_server.rstrip('/')}/{path.lstrip('/')}"


class QuestradeAuthEndpoint:
    """HTTP side of the Questrade refresh-token flow."""

    def __init__(self, config: SyncConfig, *, http_client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self.token_url = config.questrade_auth_url
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.config.request_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a new access token.

        Raises:
            RefreshError: Transport failure or any non-200 status.
            MalformedResponse: 200 body that is not JSON or lacks ``access_token``,
                ``api_server`` or a positive ``expires_in``.
        """
        client = await self._get_client()
        payload = {"grant_type": "refresh_token", "refresh_token": refresh_token}

        logger.debug(
            "Questrade token refresh: POST %s (refresh_token=%s)",
            self.token_url,
            mask_token(refresh_token),
        )
        try:
            resp = await client.post(self.token_url, data=payload)
        except httpx.HTTPError as e:
            raise RefreshError(f"Token refresh request failed: {e}") from e

        logger.debug("Questrade token refresh response: status=%d", resp.status_code)
        if resp.status_code != 200:
            raise RefreshError(
                f"Token refresh failed: status {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            token = TokenResponse.model_validate(resp.json())
        except (ValueError, PydanticValidationError) as e:
            raise MalformedResponse(f"Cannot parse token response: {e}") from e

        if not token.access_token:
            raise MalformedResponse("Token response has no access_token")
        if not token.api_server:
            raise MalformedResponse("Token response has no api_server")
        if token.expires_in <= 0:
            raise MalformedResponse("Token response has no positive expires_in")

        logger.info(
            "Refreshed Questrade access token (expires in %ds, rotated=%s)",
            token.expires_in,
            bool(token.refresh_token),
        )
        return token

    async def validate(self, access_token: str, api_server: str) -> bool:
        """Live check of a cached access token.

        Returns:
            True when the API accepts the token, False when it rejects it.

        Raises:
            ValidationError: Transport failure or an answer that is neither.
        """
        if not access_token or not api_server:
            return False

        client = await self._get_client()
        url = api_url(api_server, "v1/time")
        try:
            resp = await client.get(url, headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as e:
            raise ValidationError(f"Token validation request failed: {e}") from e

        if resp.status_code == 200:
            return True
        if resp.status_code == 401:
            return False

        body = resp.text
        lower = body.lower()
        if "invalid" in lower and "access" in lower:
            return False

        raise ValidationError(f"Unexpected status from token validation: {resp.status_code} - {body}")
