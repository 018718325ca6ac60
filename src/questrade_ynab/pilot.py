"""
SyncPilot — main orchestrator.

Ties the pieces together for one run: credential lifecycle, both account
listings, the reconciliation plan and, once the user approves it, the writes
to YNAB. The CLI only talks to this class.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from questrade_ynab.auth.credential import Credential, TokenStore
from questrade_ynab.auth.endpoint import QuestradeAuthEndpoint
from questrade_ynab.auth.lifecycle import AuthEndpoint, TokenLifecycleManager, TokenPrompt
from questrade_ynab.config import SyncConfig
from questrade_ynab.connectors.questrade_connector import QuestradeConnector
from questrade_ynab.connectors.ynab_connector import YNABConnector
from questrade_ynab.errors import ConfigError, MissingCredential
from questrade_ynab.execution.applier import PlanApplier, ProgressCallback, SyncResult
from questrade_ynab.models.accounts import DestinationAccount, SourceAccount
from questrade_ynab.models.plan import SyncMode, UpdatePlan
from questrade_ynab.reconciliation.engine import ReconciliationEngine
from questrade_ynab.storage import JSONFileGateway, PersistenceGateway

logger = logging.getLogger("questrade_ynab")


@dataclass
class SyncPreview:
    """Everything the user needs to see before approving a sync."""

    plan: UpdatePlan
    source_accounts: list[SourceAccount]
    destination_accounts: list[DestinationAccount]
    mapping: dict[str, str]


@dataclass
class SyncPilot:
    """Top-level orchestrator for questrade-ynab.

    Usage::

        from questrade_ynab import SyncPilot

        pilot = SyncPilot.from_config("~/.questrade-ynab/settings.yaml", prompt=prompt)
        preview = await pilot.prepare(SyncMode.BALANCE)
        if user_approves(preview.plan):
            result = await pilot.apply(preview.plan)
        await pilot.close()

    The pilot coordinates:
    - **Credentials**: Questrade refresh-token lifecycle, YNAB personal token.
    - **Connectors**: Questrade account balances, YNAB budget accounts.
    - **Reconciliation**: Balance deltas for every mapped account pair.
    - **Execution**: Approved updates written back to YNAB.
    """

    config: SyncConfig
    gateway: PersistenceGateway
    prompt: TokenPrompt
    endpoint: AuthEndpoint | None = None
    engine: ReconciliationEngine = field(default_factory=ReconciliationEngine)
    _manager: TokenLifecycleManager | None = field(default=None, init=False, repr=False)
    _connectors: list[Any] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def from_config(
        cls, config_path: str | None = None, *, prompt: TokenPrompt, **overrides: Any
    ) -> SyncPilot:
        """Create a SyncPilot from a settings file or keyword arguments."""
        config = SyncConfig.load(config_path, **overrides)
        return cls(config=config, gateway=JSONFileGateway(config), prompt=prompt)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    @property
    def manager(self) -> TokenLifecycleManager:
        """Lifecycle manager over the stored Questrade record, built on first use."""
        if self._manager is None:
            if self.endpoint is None:
                self.endpoint = QuestradeAuthEndpoint(self.config)
            stored = self.gateway.load_credentials()
            store = TokenStore.from_record(stored.questrade.model_dump())
            self._manager = TokenLifecycleManager(store, self.endpoint, self.gateway, self.prompt)
        return self._manager

    async def ensure_credential(self, *, force_refresh: bool = False) -> Credential:
        """Return a working Questrade credential, prompting if needed."""
        if force_refresh:
            self.manager.invalidate()
        return await self.manager.ensure_valid()

    def _ynab(self) -> YNABConnector:
        ynab = self.gateway.load_credentials().ynab
        if not ynab.access_token or not ynab.budget_id:
            raise MissingCredential(
                "YNAB access token and budget id are not set. Run 'questrade-ynab auth set' first."
            )
        connector = YNABConnector(ynab.access_token, ynab.budget_id, self.config)
        self._connectors.append(connector)
        return connector

    def _questrade(self, credential: Credential) -> QuestradeConnector:
        connector = QuestradeConnector(credential, self.config)
        self._connectors.append(connector)
        return connector

    # ------------------------------------------------------------------
    # Accounts & mapping
    # ------------------------------------------------------------------

    async def fetch_accounts(self) -> tuple[list[SourceAccount], list[DestinationAccount]]:
        """Pull both account lists. Credentials are settled before any fetch."""
        ynab = self._ynab()
        credential = await self.ensure_credential()
        questrade = self._questrade(credential)

        tasks = [
            asyncio.create_task(questrade.list_accounts()),
            asyncio.create_task(ynab.get_accounts()),
        ]
        try:
            source_accounts, destination_accounts = await asyncio.gather(*tasks)
        except Exception:
            # The surviving fetch must not outlive its client
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        logger.info(
            "Fetched %d Questrade and %d YNAB accounts",
            len(source_accounts),
            len(destination_accounts),
        )
        return source_accounts, destination_accounts

    async def list_accounts(
        self,
    ) -> tuple[list[SourceAccount], list[DestinationAccount], dict[str, str]]:
        """Both account lists plus the current mapping (empty when none is saved)."""
        source_accounts, destination_accounts = await self.fetch_accounts()
        try:
            mapping = self.gateway.load_mapping()
        except ConfigError:
            mapping = {}
        return source_accounts, destination_accounts, mapping

    def save_mapping(self, mapping: dict[str, str]) -> None:
        self.gateway.save_mapping(mapping)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def prepare(self, mode: SyncMode | None = None) -> SyncPreview:
        """Build the update plan for review. Nothing is written to YNAB.

        Raises:
            ConfigError: No mapping has been saved.
            MissingCredential: YNAB settings are missing, or no Questrade token.
            RefreshExhausted / ValidationError: The Questrade token could not be settled.
        """
        mode = mode or self.config.default_mode
        mapping = self.gateway.load_mapping()
        source_accounts, destination_accounts = await self.fetch_accounts()
        plan = self.engine.plan(source_accounts, destination_accounts, mapping, mode)
        return SyncPreview(
            plan=plan,
            source_accounts=source_accounts,
            destination_accounts=destination_accounts,
            mapping=mapping,
        )

    async def apply(
        self, plan: UpdatePlan, *, on_progress: ProgressCallback | None = None
    ) -> SyncResult:
        """Write an approved plan to YNAB."""
        applier = PlanApplier(self._ynab(), self.config)
        return await applier.apply(plan, on_progress=on_progress)

    async def close(self) -> None:
        """Close every HTTP client opened during this run."""
        for connector in self._connectors:
            await connector.close()
        self._connectors.clear()
        if isinstance(self.endpoint, QuestradeAuthEndpoint):
            await self.endpoint.close()
