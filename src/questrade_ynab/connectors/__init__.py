"""Connectors package — Questrade and YNAB API clients."""
from questrade_ynab.connectors.base import BaseConnector
from questrade_ynab.connectors.questrade_connector import QuestradeConnector
from questrade_ynab.connectors.ynab_connector import YNABConnector

__all__ = [
    "BaseConnector",
    "QuestradeConnector",
    "YNABConnector",
]
