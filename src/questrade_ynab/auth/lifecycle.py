"""
Token lifecycle manager — keeps the Questrade access token valid across runs.

Decision order on every ``ensure_valid()`` call:

1. No refresh token stored → ask the user for one (empty answer is fatal).
2. A cached, unexpired access token → live-check it against ``/v1/time``.
   Still good → done, nothing written. Rejected → refresh. Indeterminate →
   ``ValidationError``; the caller must stop.
3. Otherwise → exchange the refresh token for a new access token.
4. Exchange failed → ask the user for a fresh refresh token and try exactly
   once more. A second failure is fatal (``RefreshExhausted``).

Every successful exchange is persisted before control returns. A failed write
is logged and the in-memory credential is still returned.

Validating first matters: Questrade rotates the refresh token on every
exchange, so refreshing a token that still works burns one needlessly.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from questrade_ynab.auth.credential import Credential, TokenStore, mask_token
from questrade_ynab.errors import (
    MalformedResponse,
    MissingCredential,
    PersistenceError,
    RefreshError,
    RefreshExhausted,
)

if TYPE_CHECKING:
    from questrade_ynab.auth.endpoint import TokenResponse
    from questrade_ynab.storage import PersistenceGateway

logger = logging.getLogger("questrade_ynab.auth.lifecycle")

INITIAL_TOKEN_PROMPT = "Enter your Questrade manual authorization token (refresh token)"
RECOVERY_TOKEN_PROMPT = "Refresh failed. Enter a new Questrade refresh token"


class TokenState(str, Enum):
    """States of the credential lifecycle."""

    NO_REFRESH_TOKEN = "no_refresh_token"
    HAVE_REFRESH_ONLY = "have_refresh_only"
    CACHED_ACCESS_TOKEN = "cached_access_token"
    VALIDATING = "validating"
    REFRESHING = "refreshing"
    READY = "ready"
    RECOVERY_PROMPT = "recovery_prompt"
    FAILED = "failed"


class TokenPrompt(Protocol):
    """Asks the user for a refresh token. Returns "" when they decline."""

    def prompt_for_token(self, message: str) -> str: ...


class AuthEndpoint(Protocol):
    """Remote side of the refresh-token flow."""

    async def refresh(self, refresh_token: str) -> TokenResponse: ...

    async def validate(self, access_token: str, api_server: str) -> bool: ...


class TokenLifecycleManager:
    """Hands out a Questrade credential whose access token currently works.

    Usage::

        store = TokenStore.from_record(gateway.load_credentials().questrade.model_dump())
        manager = TokenLifecycleManager(store, QuestradeAuthEndpoint(config), gateway, prompt)
        credential = await manager.ensure_valid()

    One manager serves one process; calls must not overlap.
    """

    def __init__(
        self,
        store: TokenStore,
        endpoint: AuthEndpoint,
        gateway: PersistenceGateway,
        prompt: TokenPrompt,
    ) -> None:
        self.store = store
        self.endpoint = endpoint
        self.gateway = gateway
        self.prompt = prompt
        self.history: list[TokenState] = []
        self._state = self._initial_state()

    @property
    def state(self) -> TokenState:
        return self._state

    def _initial_state(self) -> TokenState:
        if not self.store.refresh_token:
            return TokenState.NO_REFRESH_TOKEN
        if self.store.credential.has_cached_access:
            return TokenState.CACHED_ACCESS_TOKEN
        return TokenState.HAVE_REFRESH_ONLY

    def _transition(self, state: TokenState) -> None:
        logger.debug("Token state: %s -> %s", self._state.value, state.value)
        self._state = state
        self.history.append(state)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ensure_valid(self) -> Credential:
        """Return a credential whose access token works right now.

        Raises:
            MissingCredential: No refresh token and the user gave none.
            ValidationError: The live check was indeterminate.
            RefreshExhausted: Refresh failed again after the recovery prompt.
        """
        self.history = []
        self._state = self._initial_state()
        self.history.append(self._state)

        if self._state is TokenState.NO_REFRESH_TOKEN:
            self._acquire_initial_token()

        cred = self.store.credential
        if cred.has_cached_access and not cred.is_expired():
            self._transition(TokenState.VALIDATING)
            # Indeterminate checks raise ValidationError and leave the state as is
            valid = await self.endpoint.validate(cred.access_token, cred.api_server)
            if valid:
                logger.info("Cached Questrade access token is valid")
                self._transition(TokenState.READY)
                return cred
            logger.info("Cached Questrade access token was rejected; refreshing")
        elif cred.has_cached_access:
            logger.info("Cached Questrade access token expired at %s; refreshing", cred.expires_at)

        try:
            return await self._refresh()
        except (RefreshError, MalformedResponse) as first_error:
            logger.warning("Questrade token refresh failed: %s", first_error)
            return await self._recover(first_error)

    def invalidate(self) -> None:
        """Drop the cached access token so the next call refreshes."""
        self.store.clear_access()
        self._state = self._initial_state()

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _acquire_initial_token(self) -> None:
        token = self.prompt.prompt_for_token(INITIAL_TOKEN_PROMPT).strip()
        if not token:
            self._transition(TokenState.FAILED)
            raise MissingCredential("No Questrade refresh token provided")
        self.store.set_refresh_token(token)
        self._persist()
        self._transition(TokenState.HAVE_REFRESH_ONLY)

    async def _refresh(self) -> Credential:
        self._transition(TokenState.REFRESHING)
        response = await self.endpoint.refresh(self.store.refresh_token)
        cred = self.store.apply_refresh(
            access_token=response.access_token,
            api_server=response.api_server,
            expires_in=response.expires_in,
            refresh_token=response.refresh_token,
        )
        self._persist()
        self._transition(TokenState.READY)
        return cred

    async def _recover(self, cause: Exception) -> Credential:
        self._transition(TokenState.RECOVERY_PROMPT)
        token = self.prompt.prompt_for_token(RECOVERY_TOKEN_PROMPT).strip()
        if not token:
            self._transition(TokenState.FAILED)
            raise MissingCredential("No Questrade refresh token provided") from cause

        self.store.set_refresh_token(token)
        self._persist()
        try:
            return await self._refresh()
        except (RefreshError, MalformedResponse) as e:
            self._transition(TokenState.FAILED)
            raise RefreshExhausted(f"Failed to refresh with the provided token: {e}") from e

    def _persist(self) -> None:
        """Write the current token set; failures only warn."""
        try:
            self.gateway.save_questrade_record(self.store.to_record())
        except PersistenceError as e:
            logger.warning("Failed to persist Questrade token: %s", e)
        else:
            logger.debug("Persisted Questrade token (refresh_token=%s)", mask_token(self.store.refresh_token))
