"""
YNAB Connector — read and update accounts in a YNAB budget.

Authentication: YNAB personal access token (bearer), read from config.json.
All amounts are in milliunits (1000 = 1.00).

YNAB API docs:
  https://api.ynab.com/v1
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from questrade_ynab.config import SyncConfig
from questrade_ynab.connectors.base import BaseConnector
from questrade_ynab.errors import DecodeError
from questrade_ynab.models.accounts import DestinationAccount, YNABTransaction

logger = logging.getLogger("questrade_ynab.connectors.ynab")


class YNABConnector(BaseConnector):
    """Client for one YNAB budget.

    Usage::

        connector = YNABConnector(access_token="...", budget_id="...", config=config)
        accounts = await connector.get_accounts()
        await connector.update_account_balance(accounts[0].id, 1_250_000)
    """

    name = "ynab"
    description = "Read and update YNAB budget accounts"

    def __init__(
        self,
        access_token: str,
        budget_id: str,
        config: SyncConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config, http_client=http_client)
        self.access_token = access_token
        self.budget_id = budget_id
        self._base_url = config.ynab_base_url.rstrip("/")

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _budget_url(self, path: str = "") -> str:
        url = f"{self._base_url}/budgets/{self.budget_id}"
        return f"{url}/{path}" if path else url

    def _error_detail(self, resp: httpx.Response) -> str:
        """YNAB errors look like ``{"error": {"id", "name", "detail"}}``."""
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        error = body.get("error") if isinstance(body, dict) else None
        if not isinstance(error, dict):
            return resp.text
        name = error.get("name", "")
        detail = error.get("detail", "")
        return f"{name} - {detail}" if name or detail else resp.text

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_accounts(self) -> list[DestinationAccount]:
        """All accounts in the budget, including closed ones."""
        resp = await self._request("GET", self._budget_url("accounts"))
        data = self._json(resp)
        try:
            raw_accounts = data["data"]["accounts"]
            return [DestinationAccount.model_validate(a) for a in raw_accounts]
        except (KeyError, TypeError, PydanticValidationError) as e:
            raise DecodeError(f"Cannot parse YNAB accounts response: {e}") from e

    async def get_budgets(self) -> list[dict[str, Any]]:
        """Budgets visible to the access token (id, name, ...)."""
        resp = await self._request("GET", f"{self._base_url}/budgets")
        data = self._json(resp)
        try:
            budgets = data["data"]["budgets"]
        except (KeyError, TypeError) as e:
            raise DecodeError(f"Cannot parse YNAB budgets response: {e}") from e
        if not isinstance(budgets, list):
            raise DecodeError("YNAB budgets response is not a list")
        return budgets

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_account_balance(self, account_id: str, amount_milliunits: int) -> None:
        """Set the cleared balance of an account."""
        await self._request(
            "PUT",
            self._budget_url(f"accounts/{account_id}"),
            json={"account": {"cleared": amount_milliunits}},
        )
        logger.debug("Updated YNAB account %s to %d milliunits", account_id, amount_milliunits)

    async def create_transaction(self, transaction: YNABTransaction) -> None:
        """Post a single transaction."""
        await self._request(
            "POST",
            self._budget_url("transactions"),
            json={"transaction": transaction.model_dump(exclude_none=True)},
            expected=(200, 201),
        )
        logger.debug(
            "Created YNAB transaction on %s for %d milliunits",
            transaction.account_id,
            transaction.amount,
        )

    # ------------------------------------------------------------------
    # Auth & health
    # ------------------------------------------------------------------

    async def validate_credentials(self) -> bool:
        if not self.access_token or not self.budget_id:
            return False
        await self.get_accounts()
        return True
