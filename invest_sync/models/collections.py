"""
Registry of the collections held by the entity store.

Each collection name maps to the entity model its raw records are validated
into, and to the :class:`Snapshot` field it populates.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Type

from invest_sync.core.exceptions import UnknownCollectionError
from invest_sync.models.asset import Asset
from invest_sync.models.base import Entity
from invest_sync.models.company import SubCompany
from invest_sync.models.investment import Investment
from invest_sync.models.investor_investment import InvestorInvestment
from invest_sync.models.profit_loss import ProfitLossRecord
from invest_sync.models.user import User


class CollectionName(str, Enum):
    INVESTMENTS = "investments"
    INVESTOR_INVESTMENTS = "investor_investments"
    USERS = "users"
    COMPANIES = "companies"
    PROFIT_LOSS_RECORDS = "profit_loss_records"
    ASSETS = "assets"


ENTITY_TYPES: Dict[CollectionName, Type[Entity]] = {
    CollectionName.INVESTMENTS: Investment,
    CollectionName.INVESTOR_INVESTMENTS: InvestorInvestment,
    CollectionName.USERS: User,
    CollectionName.COMPANIES: SubCompany,
    CollectionName.PROFIT_LOSS_RECORDS: ProfitLossRecord,
    CollectionName.ASSETS: Asset,
}


def resolve_collection(name: Any) -> CollectionName:
    """Coerce ``name`` to a :class:`CollectionName`; raises :class:`UnknownCollectionError`."""
    if isinstance(name, CollectionName):
        return name
    try:
        return CollectionName(name)
    except ValueError:
        raise UnknownCollectionError(name) from None


def normalize(name: Any, items: Iterable[Any]) -> List[Entity]:
    """
    Validate raw records into the collection's entity model.

    Already-typed entities pass through untouched.  Raises
    ``pydantic.ValidationError`` on malformed records; the fetch layer treats
    that as a fetch failure.
    """
    model = ENTITY_TYPES[resolve_collection(name)]
    return [item if isinstance(item, model) else model.model_validate(item) for item in items]
