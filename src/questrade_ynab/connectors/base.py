"""
Base connector — shared HTTP plumbing for the Questrade and YNAB clients.

Connectors are the bridge between questrade-ynab and the two remote services.
They make bearer-authenticated requests and map failures onto the tool's
error types:

- transport failure (connection, timeout) → ``TransportError``
- 401 → ``AuthError``
- any other unexpected status → ``RemoteError`` with the response detail
- a body that does not decode → ``DecodeError``

There are no retries at this level.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

import httpx

from questrade_ynab.config import SyncConfig
from questrade_ynab.errors import AuthError, DecodeError, RemoteError, TransportError

logger = logging.getLogger("questrade_ynab.connectors.base")


class BaseConnector(ABC):
    """Abstract base class for the remote service clients.

    Subclasses set ``name``, provide ``_auth_headers()`` and implement
    ``validate_credentials()``.
    """

    name: str = "base"
    description: str = "Base connector"

    def __init__(self, config: SyncConfig, *, http_client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._http = http_client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self.config.request_timeout,
                headers={"Accept": "application/json"},
            )
        return self._http

    async def close(self) -> None:
        """Clean up HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    @abstractmethod
    def _auth_headers(self) -> dict[str, str]:
        """Authorization headers for every request."""
        ...

    def _error_detail(self, resp: httpx.Response) -> str:
        """Human-readable detail for an error response."""
        return resp.text

    async def _request(
        self,
        method: str,
        url: str,
        *,
        expected: tuple[int, ...] = (200,),
        **kwargs: Any,
    ) -> httpx.Response:
        client = await self._get_client()
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}

        try:
            resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.name}: {method} {url} failed: {e}") from e

        logger.debug("%s: %s %s -> %d", self.name, method, url, resp.status_code)
        if resp.status_code in expected:
            return resp
        if resp.status_code == 401:
            raise AuthError(f"{self.name}: unauthorized ({method} {url})")
        raise RemoteError(resp.status_code, self._error_detail(resp), service=self.name)

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        """Decode a JSON body, reading numbers with fractions as ``Decimal``."""
        try:
            return json.loads(resp.text, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Invalid JSON response (status {resp.status_code}): {e}") from e

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Validate that credentials are correct and the service is reachable."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Check connector health and connectivity."""
        try:
            valid = await self.validate_credentials()
            return {"connector": self.name, "healthy": valid, "error": None}
        except Exception as e:
            return {"connector": self.name, "healthy": False, "error": str(e)}
