"""Balance reconciliation between Questrade and YNAB."""
from questrade_ynab.reconciliation.engine import ReconciliationEngine
from questrade_ynab.reconciliation.money import (
    format_amount,
    format_change,
    from_milliunits,
    to_milliunits,
)

__all__ = [
    "ReconciliationEngine",
    "format_amount",
    "format_change",
    "from_milliunits",
    "to_milliunits",
]
