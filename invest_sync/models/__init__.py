"""Typed entity models mirrored from the upstream API."""

from invest_sync.models.asset import Asset  # noqa: F401
from invest_sync.models.base import Entity  # noqa: F401
from invest_sync.models.collections import (  # noqa: F401
    ENTITY_TYPES,
    CollectionName,
    normalize,
    resolve_collection,
)
from invest_sync.models.company import SubCompany  # noqa: F401
from invest_sync.models.investment import Investment, InvestmentStatus, RiskLevel  # noqa: F401
from invest_sync.models.investor_investment import (  # noqa: F401
    InvestorInvestment,
    InvestorInvestmentStatus,
)
from invest_sync.models.profit_loss import ProfitLossPeriod, ProfitLossRecord  # noqa: F401
from invest_sync.models.snapshot import Snapshot  # noqa: F401
from invest_sync.models.user import KNOWN_ROLES, User, UserRole  # noqa: F401
