"""
Sync service: the control flow around the entity store.

- Fetches collections through the staleness-gated orchestrator, remembering
  the filters of the last fetch per collection.
- ``refresh_for_role`` is the polling callback: it force-refreshes what the
  current role looks at and raises :class:`RefreshError` if anything failed,
  so that :class:`AutoRefresh` counts the failure.
- Mutation helpers call the upstream API, mirror the result into the store,
  reconcile derived aggregates and announce the change (debounced).
- ``bind`` subscribes to domain events and re-fetches affected collections.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from invest_sync.clients.api_client import UpstreamApiClient
from invest_sync.core.config import Settings, settings
from invest_sync.core.exceptions import NotFoundException, RefreshError
from invest_sync.events.bus import EventBus
from invest_sync.events.debounce import DebouncedPublisher
from invest_sync.events.types import UpdateEvent, UpdateEventType
from invest_sync.models import (
    CollectionName,
    Entity,
    InvestorInvestment,
    InvestorInvestmentStatus,
    UserRole,
    resolve_collection,
)
from invest_sync.services.reconciler import reconcile
from invest_sync.store.entity_store import EntityStore
from invest_sync.store.fetch import FetchOrchestrator, FetchOutcome

logger = logging.getLogger(__name__)

# Collections each domain event makes out of date.
EVENT_COLLECTIONS: Dict[UpdateEventType, List[CollectionName]] = {
    UpdateEventType.COMPANY_ASSIGNMENT_UPDATED: [CollectionName.COMPANIES, CollectionName.USERS],
    UpdateEventType.COMPANY_CREATED: [CollectionName.COMPANIES],
    UpdateEventType.COMPANY_UPDATED: [CollectionName.COMPANIES],
    UpdateEventType.COMPANY_DELETED: [CollectionName.COMPANIES, CollectionName.INVESTMENTS],
    UpdateEventType.USER_ROLE_UPDATED: [CollectionName.USERS],
    UpdateEventType.ADMIN_APPROVAL_UPDATED: [CollectionName.USERS],
    UpdateEventType.INVESTMENT_UPDATED: [CollectionName.INVESTMENTS],
    UpdateEventType.INVESTOR_INVESTMENT_CREATED: [
        CollectionName.INVESTOR_INVESTMENTS,
        CollectionName.INVESTMENTS,
    ],
    UpdateEventType.PROFIT_LOSS_RECORDED: [CollectionName.PROFIT_LOSS_RECORDS],
}


class RefreshContext(BaseModel):
    """Who is looking: role, own user id and sub-company scope (admins)."""

    role: str
    user_id: Optional[str] = None
    scope_id: Optional[str] = None

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "RefreshContext":
        return cls(
            role=config.REFRESH_ROLE,
            user_id=config.REFRESH_USER_ID,
            scope_id=config.REFRESH_SCOPE_ID,
        )


class SyncService:
    def __init__(
        self,
        store: EntityStore,
        client: UpstreamApiClient,
        orchestrator: Optional[FetchOrchestrator] = None,
    ):
        self.store = store
        self.client = client
        self.orchestrator = orchestrator or FetchOrchestrator(store)
        self.bus: Optional[EventBus] = None
        self.publisher: Optional[DebouncedPublisher] = None
        self._filters: Dict[CollectionName, Dict[str, Any]] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ────────────────────────────────────────────────────────────────────
    # Fetching
    # ────────────────────────────────────────────────────────────────────

    def _remember(self, name: CollectionName, filters: Optional[Dict[str, Any]]) -> bool:
        """Store ``filters`` for ``name``; True when they differ from the last fetch."""
        if filters is None:
            return False
        changed = self._filters.get(name) != filters
        self._filters[name] = filters
        return changed

    def filters_for(self, name: Any) -> Dict[str, Any]:
        return dict(self._filters.get(resolve_collection(name), {}))

    async def _ensure(self, name: CollectionName, filters: Optional[Dict[str, Any]], force: bool):
        # Cached rows were fetched for other filters; they cannot satisfy this request.
        force = self._remember(name, filters) or force
        current = self._filters.get(name, {})
        fetchers = {
            CollectionName.INVESTMENTS: lambda: self.client.fetch_investments(current),
            CollectionName.INVESTOR_INVESTMENTS: lambda: self.client.fetch_investor_investments(
                current.get("user_id")
            ),
            CollectionName.USERS: lambda: self.client.fetch_users(current),
            CollectionName.COMPANIES: self.client.fetch_companies,
            CollectionName.PROFIT_LOSS_RECORDS: lambda: self.client.fetch_profit_loss_records(
                current.get("investment_id"), current.get("investor_investment_id")
            ),
            CollectionName.ASSETS: self.client.fetch_assets,
        }
        return await self.orchestrator.ensure_fresh(name, fetchers[name], force_refresh=force)

    async def fetch_investments(
        self, filters: Optional[Dict[str, Any]] = None, force_refresh: bool = False
    ) -> FetchOutcome:
        return await self._ensure(CollectionName.INVESTMENTS, filters, force_refresh)

    async def fetch_investor_investments(
        self, user_id: Optional[str] = None, force_refresh: bool = False
    ) -> FetchOutcome:
        filters = {"user_id": user_id} if user_id else None
        return await self._ensure(CollectionName.INVESTOR_INVESTMENTS, filters, force_refresh)

    async def fetch_users(
        self, filters: Optional[Dict[str, Any]] = None, force_refresh: bool = False
    ) -> FetchOutcome:
        return await self._ensure(CollectionName.USERS, filters, force_refresh)

    async def fetch_companies(self, force_refresh: bool = False) -> FetchOutcome:
        return await self._ensure(CollectionName.COMPANIES, None, force_refresh)

    async def fetch_profit_loss_records(
        self,
        investment_id: Optional[str] = None,
        investor_investment_id: Optional[str] = None,
        force_refresh: bool = False,
    ) -> FetchOutcome:
        filters = None
        if investment_id or investor_investment_id:
            filters = {
                "investment_id": investment_id,
                "investor_investment_id": investor_investment_id,
            }
        return await self._ensure(CollectionName.PROFIT_LOSS_RECORDS, filters, force_refresh)

    async def fetch_assets(self, force_refresh: bool = False) -> FetchOutcome:
        return await self._ensure(CollectionName.ASSETS, None, force_refresh)

    async def refresh(self, name: Any, force_refresh: bool = True) -> FetchOutcome:
        """Re-fetch ``name`` with the filters it was last fetched with."""
        return await self._ensure(resolve_collection(name), None, force_refresh)

    async def refresh_for_role(self, context: RefreshContext) -> Dict[str, FetchOutcome]:
        """
        Force-refresh the collections ``context.role`` looks at.

        Raises :class:`RefreshError` naming every collection that failed; the
        successful ones are already in the store by then.
        """
        role = context.role
        if role == UserRole.ADMIN.value and context.scope_id:
            scope = {"subCompanyId": context.scope_id}
            jobs = {
                CollectionName.INVESTMENTS: self.fetch_investments(scope, True),
                CollectionName.USERS: self.fetch_users(scope, True),
            }
        else:
            jobs = {CollectionName.INVESTMENTS: self.fetch_investments({}, True)}
            if role == UserRole.SUPERADMIN.value:
                jobs[CollectionName.COMPANIES] = self.fetch_companies(True)
                jobs[CollectionName.USERS] = self.fetch_users({}, True)
            elif role == UserRole.INVESTOR.value:
                jobs[CollectionName.INVESTOR_INVESTMENTS] = self.fetch_investor_investments(
                    context.user_id, True
                )
                jobs[CollectionName.PROFIT_LOSS_RECORDS] = self.fetch_profit_loss_records(
                    force_refresh=True
                )
                jobs[CollectionName.ASSETS] = self.fetch_assets(True)
            else:
                logger.warning("No refresh plan for role '%s'; investments only", role)

        results = await asyncio.gather(*jobs.values())
        outcomes = dict(zip((name.value for name in jobs), results))

        failed = [name for name, outcome in outcomes.items() if outcome == FetchOutcome.FAILED]
        if failed:
            raise RefreshError(failed)
        return outcomes

    # ────────────────────────────────────────────────────────────────────
    # Mutations (optimistic mirror + reconcile + announce)
    # ────────────────────────────────────────────────────────────────────

    def reconcile_store(self) -> None:
        """Recompute investment aggregates in the store from cached positions."""
        self.store.apply_reconciled(reconcile(self.store.snapshot()))

    def _announce(
        self, event: UpdateEventType, payload: Dict[str, Any], source_tag: str
    ) -> None:
        if self.publisher is not None:
            self.publisher.publish(event, payload, source_tag)
        elif self.bus is not None:
            self.bus.publish(event, payload, source_tag)

    def _mirror(self, name: CollectionName, raw: Any) -> Entity:
        if not isinstance(raw, dict):
            raise ValueError(f"Upstream did not return the {name.value} record")
        entity = self.store.upsert_one(name, raw)
        self.reconcile_store()
        return entity

    async def create_investment(self, data: Dict[str, Any]) -> Entity:
        raw = await self.client.create_investment(data)
        entity = self._mirror(CollectionName.INVESTMENTS, raw)
        self._announce(
            UpdateEventType.INVESTMENT_UPDATED,
            {"action": "created", "id": entity.id},
            "investment-management",
        )
        return entity

    async def update_investment(self, investment_id: str, data: Dict[str, Any]) -> Entity:
        raw = await self.client.update_investment(investment_id, data)
        entity = self._mirror(CollectionName.INVESTMENTS, raw)
        self._announce(
            UpdateEventType.INVESTMENT_UPDATED,
            {"action": "updated", "id": entity.id},
            "investment-management",
        )
        return entity

    async def delete_investment(self, investment_id: str) -> bool:
        await self.client.delete_investment(investment_id)
        removed = self.store.remove_one(CollectionName.INVESTMENTS, investment_id)
        self.reconcile_store()
        self._announce(
            UpdateEventType.INVESTMENT_UPDATED,
            {"action": "deleted", "id": str(investment_id)},
            "investment-management",
        )
        return removed

    async def create_investor_investment(self, data: Dict[str, Any]) -> Entity:
        raw = await self.client.create_investor_investment(data)
        entity = self._mirror(CollectionName.INVESTOR_INVESTMENTS, raw)
        self._announce(
            UpdateEventType.INVESTOR_INVESTMENT_CREATED,
            {"id": entity.id, "investment_id": entity.investment_id},
            "investor-portal",
        )
        return entity

    async def withdraw_investor_investment(self, position_id: str) -> Entity:
        raw = await self.client.withdraw_investor_investment(position_id)
        if isinstance(raw, dict):
            entity = self._mirror(CollectionName.INVESTOR_INVESTMENTS, raw)
        else:
            cached = {
                ii.id: ii for ii in self.store.items(CollectionName.INVESTOR_INVESTMENTS)
            }.get(str(position_id))
            if not isinstance(cached, InvestorInvestment):
                raise NotFoundException("Investor investment", position_id)
            entity = self.store.upsert_one(
                CollectionName.INVESTOR_INVESTMENTS,
                cached.model_copy(update={"status": InvestorInvestmentStatus.WITHDRAWN}),
            )
            self.reconcile_store()
        self._announce(
            UpdateEventType.INVESTMENT_UPDATED,
            {"action": "withdrawn", "id": entity.id},
            "investor-portal",
        )
        return entity

    # ────────────────────────────────────────────────────────────────────
    # Event wiring
    # ────────────────────────────────────────────────────────────────────

    def bind(self, bus: EventBus, debounce_delay: float = settings.DEBOUNCE_DELAY) -> Callable[[], None]:
        """
        Publish through ``bus`` and re-fetch on domain events.

        Only collections that have been fetched at least once are re-fetched.
        Returns a callable that undoes the binding.
        """
        self.unbind()
        self.bus = bus
        self.publisher = DebouncedPublisher(bus, debounce_delay)
        self._unsubscribe = bus.subscribe(list(EVENT_COLLECTIONS), self._on_event)
        return self.unbind

    def unbind(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.publisher is not None:
            self.publisher.cancel_all()
        self.publisher = None
        self.bus = None

    async def _on_event(self, event: UpdateEvent) -> None:
        try:
            names = EVENT_COLLECTIONS[UpdateEventType(event.event_name)]
        except (ValueError, KeyError):
            return
        loaded = [
            name
            for name in names
            if self.store.get_collection(name)["last_fetched_at"] is not None
        ]
        if loaded:
            logger.info(
                "Re-fetching %s", ", ".join(n.value for n in loaded),
                extra={"event_name": event.event_name, "source_tag": event.source_tag},
            )
            await asyncio.gather(*(self.refresh(name) for name in loaded))
