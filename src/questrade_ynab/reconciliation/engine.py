"""
Reconciliation engine — turn account balances and a mapping into an update plan.

For every mapping entry (Questrade account number → YNAB account id), in
mapping order:

1. The Questrade account must exist and have a known balance.
2. The YNAB account must exist.
3. ``delta = new_balance - current_balance`` where ``current_balance`` is the
   YNAB balance (milliunits / 1000, exact) and ``new_balance`` is the Questrade
   total equity rounded half-even to the milliunit scale.

Entries failing 1 or 2 are skipped and counted, never fatal. Balance mode keeps
zero-delta entries (the absolute balance is written anyway); transaction mode
drops them, since a zero-amount transaction means nothing.

The engine is pure: no network, no disk.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from questrade_ynab.models.accounts import DestinationAccount, SourceAccount
from questrade_ynab.models.plan import (
    SkippedMapping,
    SkipReason,
    SyncMode,
    UpdatePlan,
    UpdatePlanEntry,
)
from questrade_ynab.reconciliation.money import from_milliunits, quantize_major, to_milliunits

logger = logging.getLogger("questrade_ynab.reconciliation.engine")


class ReconciliationEngine:
    """
    Compute the balance updates needed to bring YNAB in line with Questrade.

    Example usage:
        engine = ReconciliationEngine()
        plan = engine.plan(
            source_accounts=questrade_accounts,
            destination_accounts=ynab_accounts,
            mapping={"51234567": "ynab-account-id"},
            mode=SyncMode.BALANCE,
        )
        print(f"{len(plan)} updates, {plan.skipped_count} skipped")
    """

    def plan(
        self,
        source_accounts: Iterable[SourceAccount],
        destination_accounts: Iterable[DestinationAccount],
        mapping: Mapping[str, str],
        mode: SyncMode = SyncMode.BALANCE,
    ) -> UpdatePlan:
        sources = {a.number: a for a in source_accounts}
        destinations = {a.id: a for a in destination_accounts}
        plan = UpdatePlan(mode=mode)

        for source_id, destination_id in mapping.items():
            source = sources.get(source_id)
            if source is None:
                self._skip(plan, source_id, destination_id, SkipReason.UNKNOWN_SOURCE)
                continue

            equity = source.total_equity
            if equity is None:
                self._skip(plan, source_id, destination_id, SkipReason.NO_BALANCE)
                continue

            destination = destinations.get(destination_id)
            if destination is None:
                self._skip(plan, source_id, destination_id, SkipReason.UNKNOWN_DESTINATION)
                continue

            entry = self._entry(source, equity, destination)
            if mode is SyncMode.TRANSACTION and entry.is_zero:
                plan.unchanged += 1
                logger.debug("Account %s already matches %s", source_id, destination.name)
                continue
            plan.entries.append(entry)

        logger.info(
            "Planned %d %s update(s), %d skipped, %d unchanged",
            len(plan.entries),
            mode.value,
            plan.skipped_count,
            plan.unchanged,
        )
        return plan

    @staticmethod
    def _entry(source: SourceAccount, equity: Decimal, destination: DestinationAccount) -> UpdatePlanEntry:
        new_balance = quantize_major(equity)
        current_balance = from_milliunits(destination.balance)
        new_milliunits = to_milliunits(new_balance)
        return UpdatePlanEntry(
            source=source,
            destination=destination,
            current_balance=current_balance,
            new_balance=new_balance,
            delta=new_balance - current_balance,
            new_balance_milliunits=new_milliunits,
            delta_milliunits=new_milliunits - destination.balance,
        )

    @staticmethod
    def _skip(plan: UpdatePlan, source_id: str, destination_id: str, reason: SkipReason) -> None:
        logger.warning(
            "Skipping mapping %s -> %s: %s",
            source_id,
            destination_id,
            reason.value.replace("_", " "),
        )
        plan.skipped.append(SkippedMapping(source_id, destination_id, reason))
