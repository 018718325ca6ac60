"""
questrade-ynab authentication and token management.

Provides the Questrade refresh-token flow: credential state, the auth
endpoint client, and the lifecycle manager that validates, refreshes and
recovers the access token.
"""

from questrade_ynab.auth.credential import Credential, TokenStore, mask_token
from questrade_ynab.auth.endpoint import QuestradeAuthEndpoint, TokenResponse
from questrade_ynab.auth.lifecycle import (
    TokenLifecycleManager,
    TokenPrompt,
    TokenState,
)

__all__ = [
    "Credential",
    "QuestradeAuthEndpoint",
    "TokenLifecycleManager",
    "TokenPrompt",
    "TokenResponse",
    "TokenState",
    "TokenStore",
    "mask_token",
]
