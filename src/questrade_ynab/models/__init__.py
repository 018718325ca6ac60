"""Data models shared across questrade-ynab."""
from questrade_ynab.models.accounts import (
    AccountBalances,
    AccountsResponse,
    DestinationAccount,
    PerCurrencyBalance,
    SourceAccount,
    YNABTransaction,
)
from questrade_ynab.models.plan import (
    SkippedMapping,
    SkipReason,
    SyncMode,
    UpdatePlan,
    UpdatePlanEntry,
)

__all__ = [
    "AccountBalances",
    "AccountsResponse",
    "DestinationAccount",
    "PerCurrencyBalance",
    "SkipReason",
    "SkippedMapping",
    "SourceAccount",
    "SyncMode",
    "UpdatePlan",
    "UpdatePlanEntry",
    "YNABTransaction",
]
