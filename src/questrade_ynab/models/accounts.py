"""
Account models — Questrade source accounts and YNAB destination accounts.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

# YNAB stores amounts in milliunits: 1000 milliunits = 1 currency unit.
MILLIUNITS_PER_UNIT = 1000


class PerCurrencyBalance(BaseModel):
    """One balance row from Questrade's ``/accounts/{id}/balances``."""

    model_config = ConfigDict(populate_by_name=True)

    currency: str = ""
    cash: Decimal = Decimal(0)
    market_value: Decimal = Field(default=Decimal(0), alias="marketValue")
    total_equity: Decimal = Field(default=Decimal(0), alias="totalEquity")
    buying_power: Decimal = Field(default=Decimal(0), alias="buyingPower")
    maintenance_excess: Decimal = Field(default=Decimal(0), alias="maintenanceExcess")
    is_real_time: bool = Field(default=False, alias="isRealTime")


class AccountBalances(BaseModel):
    """Per-currency and combined balances for a single Questrade account."""

    model_config = ConfigDict(populate_by_name=True)

    per_currency_balances: list[PerCurrencyBalance] = Field(
        default_factory=list, alias="perCurrencyBalances"
    )
    combined_balances: list[PerCurrencyBalance] = Field(
        default_factory=list, alias="combinedBalances"
    )

    @property
    def combined(self) -> PerCurrencyBalance | None:
        """The authoritative balance: the first combined entry, if any."""
        return self.combined_balances[0] if self.combined_balances else None


class SourceAccount(BaseModel):
    """A Questrade brokerage account.

    ``balances`` is filled in after the account listing; it stays ``None``
    when the balance fetch for this account failed.
    """

    model_config = ConfigDict(populate_by_name=True)

    number: str
    type: str = ""
    status: str = ""
    is_primary: bool = Field(default=False, alias="isPrimary")
    is_billing: bool = Field(default=False, alias="isBilling")
    client_account_type: str = Field(default="", alias="clientAccountType")
    balances: AccountBalances | None = Field(default=None, exclude=True)

    @property
    def total_equity(self) -> Decimal | None:
        """Combined total equity in major units, or ``None`` when unknown."""
        if self.balances is None:
            return None
        combined = self.balances.combined
        return combined.total_equity if combined else None

    @property
    def label(self) -> str:
        return f"#{self.number} ({self.type})" if self.type else f"#{self.number}"


class AccountsResponse(BaseModel):
    """Body of Questrade's ``GET /v1/accounts``."""

    model_config = ConfigDict(populate_by_name=True)

    accounts: list[SourceAccount] = Field(default_factory=list)
    user_id: int | None = Field(default=None, alias="userId")


class DestinationAccount(BaseModel):
    """A YNAB account. ``balance`` is in milliunits."""

    id: str
    name: str = ""
    type: str = ""
    balance: int = 0
    closed: bool = False
    note: str | None = None

    @property
    def balance_major(self) -> Decimal:
        """Balance in major currency units (exact)."""
        return Decimal(self.balance) / MILLIUNITS_PER_UNIT


class YNABTransaction(BaseModel):
    """A YNAB transaction to be created. ``amount`` is in milliunits."""

    account_id: str
    date: str
    amount: int
    payee_name: str
    memo: str | None = None
    cleared: str | None = "cleared"
    approved: bool = True
