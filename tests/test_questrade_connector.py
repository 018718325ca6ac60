"""Tests for the Questrade connector."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from questrade_ynab.auth.credential import Credential
from questrade_ynab.config import SyncConfig
from questrade_ynab.connectors.questrade_connector import QuestradeConnector
from questrade_ynab.errors import AuthError, DecodeError, RemoteError, TransportError

API_SERVER = "https://api01.iq.questrade.com/"

ACCOUNTS = {
    "accounts": [
        {
            "type": "TFSA",
            "number": "51000001",
            "status": "Active",
            "isPrimary": True,
            "isBilling": True,
            "clientAccountType": "Individual",
        },
        {"type": "RRSP", "number": "51000002", "status": "Active", "clientAccountType": "Individual"},
        {"type": "Margin", "number": "51000003", "status": "Active", "clientAccountType": "Individual"},
    ],
    "userId": 123456,
}


def _balances(total_equity: float) -> dict:
    row = {
        "currency": "CAD",
        "cash": 10.5,
        "marketValue": total_equity - 10.5,
        "totalEquity": total_equity,
        "buyingPower": 0,
        "maintenanceExcess": 0,
        "isRealTime": False,
    }
    return {"perCurrencyBalances": [row], "combinedBalances": [row]}


def _connector(tmp_path: Path, handler, **config) -> QuestradeConnector:  # noqa: ANN001
    credential = Credential(refresh_token="r0", access_token="a0", api_server=API_SERVER)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return QuestradeConnector(credential, SyncConfig(config_dir=tmp_path, **config), http_client=client)


def _routes(balances: dict[str, httpx.Response]):  # noqa: ANN202
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer a0"
        path = request.url.path
        if path == "/v1/accounts":
            return httpx.Response(200, json=ACCOUNTS)
        number = path.split("/")[3]
        return balances[number]

    return handler


class TestGetAccounts:
    @pytest.mark.asyncio
    async def test_parses_accounts(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, _routes({}))
        accounts = await connector.get_accounts()

        assert [a.number for a in accounts] == ["51000001", "51000002", "51000003"]
        assert accounts[0].type == "TFSA"
        assert accounts[0].is_primary is True
        assert accounts[0].client_account_type == "Individual"
        assert accounts[0].balances is None
        assert accounts[0].total_equity is None

    @pytest.mark.asyncio
    async def test_unauthorized(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(401, json={"code": 1017}))
        with pytest.raises(AuthError):
            await connector.get_accounts()

    @pytest.mark.asyncio
    async def test_server_error(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(RemoteError) as exc_info:
            await connector.get_accounts()
        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "boom"

    @pytest.mark.asyncio
    async def test_malformed_body(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(DecodeError):
            await connector.get_accounts()

    @pytest.mark.asyncio
    async def test_wrong_shape(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(200, json={"accounts": "nope"}))
        with pytest.raises(DecodeError):
            await connector.get_accounts()

    @pytest.mark.asyncio
    async def test_transport_failure(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        connector = _connector(tmp_path, handler)
        with pytest.raises(TransportError):
            await connector.get_accounts()


class TestBalances:
    @pytest.mark.asyncio
    async def test_balances_are_decimal(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, _routes({"51000001": httpx.Response(200, json=_balances(1000.5))}))
        balances = await connector.get_account_balances("51000001")

        assert balances.combined is not None
        assert balances.combined.total_equity == Decimal("1000.5")
        assert isinstance(balances.combined.cash, Decimal)

    @pytest.mark.asyncio
    async def test_list_accounts_keeps_order_when_one_fails(self, tmp_path: Path) -> None:
        connector = _connector(
            tmp_path,
            _routes(
                {
                    "51000001": httpx.Response(200, json=_balances(1000.5)),
                    "51000002": httpx.Response(500, text="internal error"),
                    "51000003": httpx.Response(200, json=_balances(25.25)),
                }
            ),
        )
        accounts = await connector.list_accounts()

        assert [a.number for a in accounts] == ["51000001", "51000002", "51000003"]
        assert accounts[0].total_equity == Decimal("1000.5")
        assert accounts[1].balances is None
        assert accounts[1].total_equity is None
        assert accounts[2].total_equity == Decimal("25.25")

    @pytest.mark.asyncio
    async def test_empty_combined_balances(self, tmp_path: Path) -> None:
        empty = {"perCurrencyBalances": [], "combinedBalances": []}
        connector = _connector(
            tmp_path,
            _routes({n: httpx.Response(200, json=empty) for n in ("51000001", "51000002", "51000003")}),
        )
        accounts = await connector.list_accounts()
        assert all(a.total_equity is None for a in accounts)

    @pytest.mark.asyncio
    async def test_fan_out_is_bounded(self, tmp_path: Path) -> None:
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            if request.url.path == "/v1/accounts":
                return httpx.Response(200, json=ACCOUNTS)
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, json=_balances(1.0))

        connector = _connector(tmp_path, handler, max_concurrency=2)
        accounts = await connector.list_accounts()

        assert len(accounts) == 3
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_no_accounts(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(200, json={"accounts": []}))
        assert await connector.list_accounts() == []


class TestHealth:
    @pytest.mark.asyncio
    async def test_server_time(self, tmp_path: Path) -> None:
        connector = _connector(
            tmp_path, lambda request: httpx.Response(200, json={"time": "2024-03-01T12:00:00.000000-05:00"})
        )
        assert await connector.get_server_time() == "2024-03-01T12:00:00.000000-05:00"

    @pytest.mark.asyncio
    async def test_health_check_reports_failure(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(401))
        health = await connector.health_check()

        assert health["connector"] == "questrade"
        assert health["healthy"] is False
        assert health["api_server"] == API_SERVER

    @pytest.mark.asyncio
    async def test_health_check_ok(self, tmp_path: Path) -> None:
        connector = _connector(tmp_path, lambda request: httpx.Response(200, json={"time": "now"}))
        health = await connector.health_check()
        assert health["healthy"] is True
        assert health["error"] is None
