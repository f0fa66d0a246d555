"""
Unit tests for SyncService.

The upstream client is an AsyncMock (see conftest) so each test controls the
fetch and mutation results and can assert on the calls made.
"""

import asyncio

import pytest

from invest_sync.core.exceptions import NotFoundException, RefreshError, UpstreamError
from invest_sync.events import EventBus, UpdateEventType
from invest_sync.models import InvestorInvestmentStatus
from invest_sync.services.consistency import validate_consistency
from invest_sync.services.sync_service import RefreshContext, SyncService
from invest_sync.store import FetchOutcome

from .conftest import (
    ADMIN_ID,
    COMPANY_ID,
    INVESTMENT_ID,
    INVESTOR_ID,
    POSITION_ID,
    make_investment,
    make_position,
    make_user,
)


@pytest.fixture()
def sync(store, mock_client) -> SyncService:
    return SyncService(store, mock_client)


class TestFetching:
    @pytest.mark.asyncio
    async def test_fresh_collection_not_refetched(self, sync, mock_client):
        assert await sync.fetch_assets() == FetchOutcome.FETCHED
        assert await sync.fetch_assets() == FetchOutcome.SKIPPED
        assert mock_client.fetch_assets.await_count == 1

    @pytest.mark.asyncio
    async def test_changed_filters_force_fetch(self, sync, mock_client):
        await sync.fetch_investments({"status": "Active"})
        await sync.fetch_investments({"status": "Active"})
        await sync.fetch_investments({"status": "Paused"})

        assert mock_client.fetch_investments.await_count == 2
        mock_client.fetch_investments.assert_awaited_with({"status": "Paused"})
        assert sync.filters_for("investments") == {"status": "Paused"}

    @pytest.mark.asyncio
    async def test_refresh_reuses_last_filters(self, sync, mock_client):
        await sync.fetch_investor_investments(INVESTOR_ID)
        await sync.refresh("investor_investments")

        assert mock_client.fetch_investor_investments.await_count == 2
        mock_client.fetch_investor_investments.assert_awaited_with(INVESTOR_ID)

    @pytest.mark.asyncio
    async def test_profit_loss_filters(self, sync, mock_client):
        await sync.fetch_profit_loss_records(investment_id=INVESTMENT_ID)
        mock_client.fetch_profit_loss_records.assert_awaited_with(INVESTMENT_ID, None)


class TestRefreshForRole:
    @pytest.mark.asyncio
    async def test_superadmin(self, sync, mock_client):
        outcomes = await sync.refresh_for_role(RefreshContext(role="superadmin"))

        assert set(outcomes) == {"investments", "companies", "users"}
        assert all(outcome == FetchOutcome.FETCHED for outcome in outcomes.values())
        mock_client.fetch_investments.assert_awaited_once_with({})
        mock_client.fetch_users.assert_awaited_once_with({})
        mock_client.fetch_companies.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_admin_scoped_to_company(self, sync, mock_client):
        context = RefreshContext(role="admin", user_id=ADMIN_ID, scope_id=COMPANY_ID)
        outcomes = await sync.refresh_for_role(context)

        assert set(outcomes) == {"investments", "users"}
        mock_client.fetch_investments.assert_awaited_once_with({"subCompanyId": COMPANY_ID})
        mock_client.fetch_users.assert_awaited_once_with({"subCompanyId": COMPANY_ID})
        mock_client.fetch_companies.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_investor(self, sync, mock_client):
        context = RefreshContext(role="investor", user_id=INVESTOR_ID)
        outcomes = await sync.refresh_for_role(context)

        assert set(outcomes) == {
            "investments",
            "investor_investments",
            "profit_loss_records",
            "assets",
        }
        mock_client.fetch_investor_investments.assert_awaited_once_with(INVESTOR_ID)
        mock_client.fetch_users.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fresh_collections_still_refreshed(self, sync, mock_client):
        context = RefreshContext(role="superadmin")
        await sync.refresh_for_role(context)
        await sync.refresh_for_role(context)
        assert mock_client.fetch_companies.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_raises_after_storing_the_rest(self, sync, store, mock_client):
        mock_client.fetch_investments.return_value = [{"id": "inv-1"}]
        mock_client.fetch_users.side_effect = UpstreamError("Users service down")

        with pytest.raises(RefreshError) as exc_info:
            await sync.refresh_for_role(RefreshContext(role="superadmin"))

        assert exc_info.value.collections == ["users"]
        assert [inv.id for inv in store.items("investments")] == ["inv-1"]
        assert store.get_collection("users")["error"] == "Users service down"


class TestMutations:
    @pytest.mark.asyncio
    async def test_create_position_round_trip_is_consistent(self, sync, store, mock_client):
        store.set_collection("investments", [make_investment()])
        store.set_collection("users", [make_user()])
        mock_client.create_investor_investment.return_value = {
            "id": POSITION_ID,
            "user_id": INVESTOR_ID,
            "investment_id": INVESTMENT_ID,
            "amount_invested": 500,
        }

        entity = await sync.create_investor_investment(
            {"investmentId": INVESTMENT_ID, "amount": 500}
        )

        assert entity.investor_id == INVESTOR_ID
        assert store.items("investments")[0].total_invested == 500
        assert store.items("investments")[0].total_investors == 1
        assert validate_consistency(store.snapshot()).is_consistent

    @pytest.mark.asyncio
    async def test_update_investment_replaces_cached_row(self, sync, store, mock_client):
        store.set_collection("investments", [make_investment()])
        mock_client.update_investment.return_value = {"id": INVESTMENT_ID, "name": "Renamed"}

        await sync.update_investment(INVESTMENT_ID, {"name": "Renamed"})

        assert [inv.name for inv in store.items("investments")] == ["Renamed"]

    @pytest.mark.asyncio
    async def test_non_record_response_rejected(self, sync, mock_client):
        mock_client.create_investment.return_value = None
        with pytest.raises(ValueError):
            await sync.create_investment({"name": "X"})

    @pytest.mark.asyncio
    async def test_delete_investment(self, sync, store, mock_client):
        store.set_collection("investments", [make_investment()])
        assert await sync.delete_investment(INVESTMENT_ID) is True
        mock_client.delete_investment.assert_awaited_once_with(INVESTMENT_ID)
        assert store.items("investments") == []

    @pytest.mark.asyncio
    async def test_withdraw_without_body_marks_cached_position(self, sync, store, mock_client):
        store.set_collection("investor_investments", [make_position()])
        mock_client.withdraw_investor_investment.return_value = None

        entity = await sync.withdraw_investor_investment(POSITION_ID)

        assert entity.status == InvestorInvestmentStatus.WITHDRAWN
        assert store.items("investor_investments")[0].status == InvestorInvestmentStatus.WITHDRAWN

    @pytest.mark.asyncio
    async def test_withdraw_unknown_position(self, sync, mock_client):
        mock_client.withdraw_investor_investment.return_value = None
        with pytest.raises(NotFoundException):
            await sync.withdraw_investor_investment("missing")

    @pytest.mark.asyncio
    async def test_upstream_failure_leaves_store_untouched(self, sync, store, mock_client):
        store.set_collection("investments", [make_investment()])
        mock_client.update_investment.side_effect = UpstreamError("Forbidden")

        with pytest.raises(UpstreamError):
            await sync.update_investment(INVESTMENT_ID, {"name": "Nope"})

        assert store.items("investments")[0].name == "Harbour Office REIT"


class TestEventBinding:
    @pytest.mark.asyncio
    async def test_mutation_announced_after_debounce(self, sync, mock_client):
        bus = EventBus()
        received = []
        bus.subscribe(UpdateEventType.INVESTMENT_UPDATED, received.append)
        sync.bind(bus, debounce_delay=0.01)
        mock_client.create_investment.return_value = {"id": "inv-9"}

        await sync.create_investment({"name": "New"})
        await sync.create_investment({"name": "New"})
        assert received == []
        await asyncio.sleep(0.04)

        assert len(received) == 1
        assert received[0].source_tag == "investment-management"
        assert received[0].payload == {"action": "created", "id": "inv-9"}

    @pytest.mark.asyncio
    async def test_event_refetches_loaded_collections_only(self, sync, mock_client):
        bus = EventBus()
        sync.bind(bus)
        await sync.fetch_investments({})

        bus.publish(UpdateEventType.COMPANY_DELETED)
        await bus.drain()

        assert mock_client.fetch_investments.await_count == 2
        mock_client.fetch_companies.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unbind_stops_refetching(self, sync, mock_client):
        bus = EventBus()
        unbind = sync.bind(bus)
        await sync.fetch_users({})
        unbind()

        bus.publish(UpdateEventType.USER_ROLE_UPDATED)
        await bus.drain()

        assert mock_client.fetch_users.await_count == 1
        assert sync.bus is None
