"""
Snapshot: an immutable view of every cached collection at one instant.

Calculation, validation and reconciliation all take a snapshot and never
write into it; reconciliation returns a new one.
"""

from datetime import datetime, timezone
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from invest_sync.models.asset import Asset
from invest_sync.models.company import SubCompany
from invest_sync.models.investment import Investment
from invest_sync.models.investor_investment import InvestorInvestment
from invest_sync.models.profit_loss import ProfitLossRecord
from invest_sync.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Snapshot(BaseModel):
    """All domain collections as last fetched (or locally reconciled)."""

    model_config = ConfigDict(frozen=True)

    investments: List[Investment] = Field(default_factory=list)
    investor_investments: List[InvestorInvestment] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)
    companies: List[SubCompany] = Field(default_factory=list)
    profit_loss_records: List[ProfitLossRecord] = Field(default_factory=list)
    assets: List[Asset] = Field(default_factory=list)

    taken_at: datetime = Field(default_factory=_utcnow)

    def investments_by_id(self) -> Dict[str, Investment]:
        return {inv.id: inv for inv in self.investments}

    def users_by_id(self) -> Dict[str, User]:
        return {user.id: user for user in self.users}
