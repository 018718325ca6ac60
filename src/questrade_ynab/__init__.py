"""
questrade-ynab — keep YNAB investment accounts in step with Questrade.

Reads account balances from Questrade, compares them with the mapped YNAB
accounts and, once you approve, writes the differences into YNAB.
"""

__version__ = "0.3.0"
__all__ = ["SyncPilot"]

from questrade_ynab.pilot import SyncPilot  # noqa: E402
