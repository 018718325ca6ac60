"""
Plan applier — writes an approved update plan into YNAB.

Balance mode sets each mapped account's cleared balance to the Questrade
equity. Transaction mode posts one cleared, approved transaction per account
for the difference. A failed entry is logged and counted; the rest of the plan
still runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from questrade_ynab.config import SyncConfig
from questrade_ynab.errors import QuestradeYNABError
from questrade_ynab.models.accounts import YNABTransaction
from questrade_ynab.models.plan import SyncMode, UpdatePlan, UpdatePlanEntry

logger = logging.getLogger("questrade_ynab.execution.applier")


class Destination(Protocol):
    async def update_account_balance(self, account_id: str, amount_milliunits: int) -> None: ...

    async def create_transaction(self, transaction: YNABTransaction) -> None: ...


@dataclass
class EntryFailure:
    entry: UpdatePlanEntry
    error: str


@dataclass
class SyncResult:
    """Outcome of applying one plan."""

    mode: SyncMode
    updated: list[UpdatePlanEntry] = field(default_factory=list)
    failures: list[EntryFailure] = field(default_factory=list)
    skipped: int = 0

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return (
            f"{self.updated_count} updated, "
            f"{self.failed_count} failed, {self.skipped} skipped"
        )


ProgressCallback = Callable[[int, int, UpdatePlanEntry, "str | None"], None]


class PlanApplier:
    """Applies ``UpdatePlan`` entries through the YNAB connector."""

    def __init__(self, destination: Destination, config: SyncConfig) -> None:
        self.destination = destination
        self.config = config

    async def apply(
        self,
        plan: UpdatePlan,
        *,
        on_progress: ProgressCallback | None = None,
        today: date | None = None,
    ) -> SyncResult:
        """Apply every entry of the plan in order.

        Args:
            plan: The approved plan.
            on_progress: Called after each entry with
                ``(position, total, entry, error_message_or_None)``.
            today: Transaction date (transaction mode), defaults to today.
        """
        result = SyncResult(mode=plan.mode, skipped=plan.skipped_count)
        txn_date = (today or date.today()).isoformat()
        total = len(plan.entries)

        for position, entry in enumerate(plan.entries, 1):
            error: str | None = None
            try:
                if plan.mode is SyncMode.BALANCE:
                    await self.destination.update_account_balance(
                        entry.destination.id, entry.new_balance_milliunits
                    )
                else:
                    await self.destination.create_transaction(self._transaction(entry, txn_date))
            except QuestradeYNABError as e:
                error = str(e)
                logger.error("Error updating YNAB account %s: %s", entry.destination.id, e)
                result.failures.append(EntryFailure(entry=entry, error=error))
            else:
                result.updated.append(entry)

            if on_progress:
                on_progress(position, total, entry, error)

        logger.info("Sync completed: %s", result.summary())
        return result

    def _transaction(self, entry: UpdatePlanEntry, txn_date: str) -> YNABTransaction:
        return YNABTransaction(
            account_id=entry.destination.id,
            date=txn_date,
            amount=entry.delta_milliunits,
            payee_name=self.config.payee_name,
            memo=self.config.memo,
            cleared="cleared",
            approved=True,
        )
