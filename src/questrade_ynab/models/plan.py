"""
Reconciliation plan models — what a sync would change in YNAB.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from questrade_ynab.models.accounts import DestinationAccount, SourceAccount


class SyncMode(str, Enum):
    """How a reconciliation plan is written to YNAB."""

    BALANCE = "balance"  # overwrite the account's cleared balance
    TRANSACTION = "transaction"  # post a delta transaction


class SkipReason(str, Enum):
    """Why a mapping entry produced no plan entry."""

    UNKNOWN_SOURCE = "unknown_source"
    NO_BALANCE = "no_balance"
    UNKNOWN_DESTINATION = "unknown_destination"


@dataclass(frozen=True)
class SkippedMapping:
    """A mapping entry that was left out of the plan."""

    source_id: str
    destination_id: str
    reason: SkipReason


@dataclass(frozen=True)
class UpdatePlanEntry:
    """One planned balance update. Amounts are major currency units."""

    source: SourceAccount
    destination: DestinationAccount
    current_balance: Decimal
    new_balance: Decimal
    delta: Decimal
    new_balance_milliunits: int
    delta_milliunits: int

    @property
    def is_zero(self) -> bool:
        return self.delta_milliunits == 0


@dataclass
class UpdatePlan:
    """The computed, not-yet-applied set of updates for one sync."""

    mode: SyncMode
    entries: list[UpdatePlanEntry] = field(default_factory=list)
    skipped: list[SkippedMapping] = field(default_factory=list)
    unchanged: int = 0  # zero-delta pairs elided in transaction mode

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def total_delta(self) -> Decimal:
        return sum((e.delta for e in self.entries), Decimal(0))
