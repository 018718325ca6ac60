"""
Questrade Connector — account listing and balances from the Questrade API.

Pulls the account list with ``GET /v1/accounts`` and then each account's
balances from ``GET /v1/accounts/{number}/balances``. The balance requests run
concurrently; one failing account does not fail the listing, it just comes
back without a balance.

Authentication: bearer access token from ``TokenLifecycleManager``.

Questrade API docs:
  https://www.questrade.com/api/documentation
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from questrade_ynab.auth.credential import Credential
from questrade_ynab.auth.endpoint import api_url
from questrade_ynab.config import SyncConfig
from questrade_ynab.connectors.base import BaseConnector
from questrade_ynab.errors import DecodeError, QuestradeYNABError
from questrade_ynab.models.accounts import AccountBalances, AccountsResponse, SourceAccount

logger = logging.getLogger("questrade_ynab.connectors.questrade")


class QuestradeConnector(BaseConnector):
    """Read Questrade accounts and balances.

    Usage::

        credential = await manager.ensure_valid()
        connector = QuestradeConnector(credential, config)
        accounts = await connector.list_accounts()

    The credential is read on every request, so a refresh performed by the
    lifecycle manager is picked up without rebuilding the connector.
    """

    name = "questrade"
    description = "Read investment account balances from Questrade"

    def __init__(
        self,
        credential: Credential,
        config: SyncConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config, http_client=http_client)
        self.credential = credential

    def _auth_headers(self) -> dict[str, str]:
        return self.credential.auth_header()

    def _url(self, path: str) -> str:
        return api_url(self.credential.api_server, path)

    # ------------------------------------------------------------------
    # Data fetchers
    # ------------------------------------------------------------------

    async def get_accounts(self) -> list[SourceAccount]:
        """List accounts without balances.

        Raises:
            AuthError: 401 from the API.
            RemoteError: Any other non-2xx status.
            DecodeError: Malformed body.
        """
        resp = await self._request("GET", self._url("v1/accounts"))
        data = self._json(resp)
        try:
            return AccountsResponse.model_validate(data).accounts
        except PydanticValidationError as e:
            raise DecodeError(f"Cannot parse Questrade accounts response: {e}") from e

    async def get_account_balances(self, number: str) -> AccountBalances:
        """Fetch per-currency and combined balances for one account."""
        resp = await self._request("GET", self._url(f"v1/accounts/{number}/balances"))
        data = self._json(resp)
        try:
            return AccountBalances.model_validate(data)
        except PydanticValidationError as e:
            raise DecodeError(f"Cannot parse balances for account {number}: {e}") from e

    async def get_server_time(self) -> str:
        """Questrade server time (``GET /v1/time``)."""
        resp = await self._request("GET", self._url("v1/time"))
        data = self._json(resp)
        if not isinstance(data, dict) or "time" not in data:
            raise DecodeError("Questrade time response has no 'time' field")
        return str(data["time"])

    async def list_accounts(self) -> list[SourceAccount]:
        """List accounts and fill in their balances concurrently.

        Returns the accounts in listing order. Accounts whose balance fetch
        failed keep ``balances=None``; the failure is logged, not raised.
        """
        accounts = await self.get_accounts()
        if not accounts:
            return accounts

        slots: list[AccountBalances | None] = [None] * len(accounts)
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def fetch(index: int) -> None:
            number = accounts[index].number
            async with semaphore:
                try:
                    slots[index] = await self.get_account_balances(number)
                except QuestradeYNABError as e:
                    logger.warning("Failed to fetch balances for account %s: %s", number, e)

        await asyncio.gather(*(fetch(i) for i in range(len(accounts))))

        for account, balances in zip(accounts, slots):
            account.balances = balances

        missing = sum(1 for b in slots if b is None)
        logger.info(
            "Questrade pull complete: %d accounts (%d without balances)",
            len(accounts),
            missing,
        )
        return accounts

    # ------------------------------------------------------------------
    # Auth & health
    # ------------------------------------------------------------------

    async def validate_credentials(self) -> bool:
        """Check that the current access token is accepted."""
        if not self.credential.access_token or not self.credential.api_server:
            return False
        await self.get_server_time()
        return True

    async def health_check(self) -> dict[str, Any]:
        result = await super().health_check()
        result["api_server"] = self.credential.api_server
        return result
