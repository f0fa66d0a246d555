"""
Shared pytest fixtures for unit tests.

Everything runs in memory: the upstream API is replaced by ``AsyncMock``
clients or ``httpx.MockTransport``, and the store takes a controllable clock,
so tests are fast, deterministic and fully isolated.
"""

from datetime import datetime, timezone
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

from invest_sync.models import (
    Asset,
    Investment,
    InvestmentStatus,
    InvestorInvestment,
    ProfitLossRecord,
    Snapshot,
    SubCompany,
    User,
)
from invest_sync.store.entity_store import EntityStore

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers: domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

COMPANY_ID = "sc-1"
COMPANY_ID_2 = "sc-2"
INVESTMENT_ID = "inv-1"
INVESTMENT_ID_2 = "inv-2"
INVESTOR_ID = "user-investor-1"
INVESTOR_ID_2 = "user-investor-2"
ADMIN_ID = "user-admin-1"
SUPERADMIN_ID = "user-super-1"
POSITION_ID = "ii-1"
POSITION_ID_2 = "ii-2"

JUNE_2025 = datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)


def make_investment(
    *,
    id: str = INVESTMENT_ID,
    name: str = "Harbour Office REIT",
    sub_company_id: Optional[str] = COMPANY_ID,
    asset_id: Optional[str] = None,
    asset_type: Optional[str] = None,
    initial_amount: float = 1000.0,
    current_value: float = 1000.0,
    min_investment: Optional[float] = 100.0,
    max_investment: Optional[float] = 2000.0,
    status: InvestmentStatus = InvestmentStatus.ACTIVE,
    total_invested: float = 0.0,
    total_investors: int = 0,
) -> Investment:
    """Create an Investment with sensible test defaults."""
    return Investment(
        id=id,
        name=name,
        sub_company_id=sub_company_id,
        asset_id=asset_id,
        asset_type=asset_type,
        initial_amount=initial_amount,
        current_value=current_value,
        min_investment=min_investment,
        max_investment=max_investment,
        status=status,
        total_invested=total_invested,
        total_investors=total_investors,
    )


def make_position(
    *,
    id: str = POSITION_ID,
    investor_id: str = INVESTOR_ID,
    investment_id: str = INVESTMENT_ID,
    amount_invested: float = 500.0,
    current_value: Optional[float] = None,
    created_at: Optional[datetime] = JUNE_2025,
) -> InvestorInvestment:
    """Create an InvestorInvestment (an investor's position)."""
    return InvestorInvestment(
        id=id,
        investor_id=investor_id,
        investment_id=investment_id,
        amount_invested=amount_invested,
        current_value=current_value,
        created_at=created_at,
    )


def make_user(
    *,
    id: str = INVESTOR_ID,
    email: Optional[str] = None,
    role: Optional[str] = "investor",
    sub_company_id: Optional[str] = None,
) -> User:
    return User(
        id=id,
        email=email if email is not None else f"{id}@example.com",
        role=role,
        sub_company_id=sub_company_id,
    )


def make_profit_loss(
    *,
    id: str = "pl-1",
    investment_id: Optional[str] = INVESTMENT_ID,
    investor_investment_id: Optional[str] = POSITION_ID,
    profit_amount: float = 0.0,
    loss_amount: float = 0.0,
    created_at: Optional[datetime] = JUNE_2025,
) -> ProfitLossRecord:
    return ProfitLossRecord(
        id=id,
        investment_id=investment_id,
        investor_investment_id=investor_investment_id,
        profit_amount=profit_amount,
        loss_amount=loss_amount,
        net_amount=profit_amount - loss_amount,
        created_at=created_at,
    )


def make_company(*, id: str = COMPANY_ID, name: str = "Harbour Capital") -> SubCompany:
    return SubCompany(id=id, name=name)


def make_asset(*, id: str = "asset-1", name: str = "Offices", type: str = "Real Estate") -> Asset:
    return Asset(id=id, name=name, type=type)


def make_snapshot(
    *,
    investments: Optional[List[Investment]] = None,
    investor_investments: Optional[List[InvestorInvestment]] = None,
    users: Optional[List[User]] = None,
    companies: Optional[List[SubCompany]] = None,
    profit_loss_records: Optional[List[ProfitLossRecord]] = None,
    assets: Optional[List[Asset]] = None,
) -> Snapshot:
    return Snapshot(
        investments=investments or [],
        investor_investments=investor_investments or [],
        users=users or [],
        companies=companies or [],
        profit_loss_records=profit_loss_records or [],
        assets=assets or [],
    )


def round_trip_snapshot(amount: float = 500.0) -> Snapshot:
    """Investment A (1000/1000, bounds 100..2000), one position, one investor."""
    return make_snapshot(
        investments=[make_investment()],
        investor_investments=[make_position(amount_invested=amount)],
        users=[make_user()],
    )


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = 1_750_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> EntityStore:
    """A fresh store with a 300 s cache duration and a fake clock."""
    return EntityStore(max_age=300.0, clock=clock)


@pytest.fixture()
def mock_client():
    """An AsyncMock standing in for UpstreamApiClient."""
    client = AsyncMock()
    client.fetch_investments.return_value = []
    client.fetch_investor_investments.return_value = []
    client.fetch_users.return_value = []
    client.fetch_companies.return_value = []
    client.fetch_profit_loss_records.return_value = []
    client.fetch_assets.return_value = []
    return client
