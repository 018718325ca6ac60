"""Applying reconciliation plans to YNAB."""
from questrade_ynab.execution.applier import EntryFailure, PlanApplier, SyncResult

__all__ = ["EntryFailure", "PlanApplier", "SyncResult"]
