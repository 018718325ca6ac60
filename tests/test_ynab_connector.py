"""Tests for the YNAB connector."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from questrade_ynab.config import SyncConfig
from questrade_ynab.connectors.ynab_connector import YNABConnector
from questrade_ynab.errors import AuthError, DecodeError, RemoteError
from questrade_ynab.models.accounts import YNABTransaction

ACCOUNTS = {
    "data": {
        "accounts": [
            {
                "id": "acc-tfsa",
                "name": "TFSA",
                "type": "otherAsset",
                "on_budget": False,
                "closed": False,
                "note": None,
                "balance": 950000,
                "cleared_balance": 950000,
                "uncleared_balance": 0,
                "deleted": False,
            },
            {"id": "acc-old", "name": "Old RRSP", "type": "otherAsset", "closed": True, "balance": -1500},
        ],
        "server_knowledge": 42,
    }
}


def _connector(tmp_path: Path, handler) -> YNABConnector:  # noqa: ANN001
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return YNABConnector("ynab-token", "budget-1", SyncConfig(config_dir=tmp_path), http_client=client)


class TestReads:
    @pytest.mark.asyncio
    async def test_get_accounts(self, tmp_path: Path) -> None:
        seen: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=ACCOUNTS)

        accounts = await _connector(tmp_path, handler).get_accounts()

        assert seen["url"] == "https://api.ynab.com/v1/budgets/budget-1/accounts"
        assert seen["auth"] == "Bearer ynab-token"
        assert [a.id for a in accounts] == ["acc-tfsa", "acc-old"]
        assert accounts[0].balance == 950000
        assert str(accounts[0].balance_major) == "950"
        assert accounts[1].closed is True

    @pytest.mark.asyncio
    async def test_get_accounts_missing_data(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(200, json={"accounts": []}))
        with pytest.raises(DecodeError):
            await connector.get_accounts()

    @pytest.mark.asyncio
    async def test_get_budgets(self, tmp_path: Path) -> None:
        body = {"data": {"budgets": [{"id": "budget-1", "name": "Household"}]}}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/budgets"
            return httpx.Response(200, json=body)

        budgets = await _connector(tmp_path, handler).get_budgets()
        assert budgets == [{"id": "budget-1", "name": "Household"}]


class TestWrites:
    @pytest.mark.asyncio
    async def test_update_account_balance(self, tmp_path: Path) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"account": {}}})

        await _connector(tmp_path, handler).update_account_balance("acc-tfsa", 1_000_000)

        assert seen["method"] == "PUT"
        assert seen["path"] == "/v1/budgets/budget-1/accounts/acc-tfsa"
        assert seen["body"] == {"account": {"cleared": 1_000_000}}

    @pytest.mark.asyncio
    async def test_create_transaction(self, tmp_path: Path) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"data": {"transaction_ids": ["t1"]}})

        transaction = YNABTransaction(
            account_id="acc-tfsa",
            date="2024-03-01",
            amount=50_000,
            payee_name="Stock Market",
            memo="Questrade sync",
        )
        await _connector(tmp_path, handler).create_transaction(transaction)

        assert seen["method"] == "POST"
        assert seen["path"] == "/v1/budgets/budget-1/transactions"
        assert seen["body"] == {
            "transaction": {
                "account_id": "acc-tfsa",
                "date": "2024-03-01",
                "amount": 50_000,
                "payee_name": "Stock Market",
                "memo": "Questrade sync",
                "cleared": "cleared",
                "approved": True,
            }
        }


class TestErrors:
    @pytest.mark.asyncio
    async def test_ynab_error_detail(self, tmp_path: Path) -> None:
        body = {"error": {"id": "404.2", "name": "resource_not_found", "detail": "Resource not found"}}
        connector = _connector(tmp_path, lambda request: httpx.Response(404, json=body))

        with pytest.raises(RemoteError) as exc_info:
            await connector.update_account_balance("missing", 0)

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "resource_not_found - Resource not found"
        assert exc_info.value.service == "ynab"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(RemoteError) as exc_info:
            await connector.get_accounts()
        assert exc_info.value.detail == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_unauthorized(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(401, json={"error": {"id": "401"}}))
        with pytest.raises(AuthError):
            await connector.get_accounts()

    @pytest.mark.asyncio
    async def test_validate_credentials_without_token(self, tmp_path: Path) -> None:
        connector = YNABConnector("", "budget-1", SyncConfig(config_dir=tmp_path))
        assert await connector.validate_credentials() is False
