"""
InvestorInvestment domain model.

One investor's position in one investment.  Upstream calls the investor
reference ``user_id``; the snapshot exposes it as ``investor_id``.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import AliasChoices, Field, field_validator

from invest_sync.models.base import Entity, coerce_id, none_as_zero

if TYPE_CHECKING:
    from invest_sync.models.investment import Investment


class InvestorInvestmentStatus(str, Enum):
    """Allowed states for an investor's position."""

    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    COMPLETED = "completed"

    @classmethod
    def _missing_(cls, value: object) -> Optional["InvestorInvestmentStatus"]:
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class InvestorInvestment(Entity):
    """
    A position held by an investor.

    ``current_value`` is optional: when the server omits it the value is
    derived from the investment's appreciation, see :meth:`effective_value`.
    """

    investor_id: str = Field(validation_alias=AliasChoices("investor_id", "user_id", "userId"))
    investment_id: str = Field(validation_alias=AliasChoices("investment_id", "investmentId"))
    amount_invested: float = Field(
        default=0.0,
        validation_alias=AliasChoices("amount_invested", "amountInvested", "amount"),
    )
    status: InvestorInvestmentStatus = InvestorInvestmentStatus.ACTIVE
    current_value: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("current_value", "currentValue")
    )
    investment_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("investment_date", "investmentDate")
    )
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    @field_validator("investor_id", "investment_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v: Any) -> Any:
        return coerce_id(v)

    @field_validator("amount_invested", mode="before")
    @classmethod
    def _null_is_zero(cls, v: Any) -> Any:
        return none_as_zero(v)

    @property
    def opened_at(self) -> Optional[datetime]:
        """Timestamp used for period bucketing: creation time, else investment date."""
        return self.created_at or self.investment_date

    def effective_value(self, investment: Optional["Investment"] = None) -> float:
        """
        Current value of the position.

        Uses the server-provided value when present; otherwise scales the
        invested amount by the investment's ``current_value / initial_amount``
        ratio, falling back to the invested amount itself.
        """
        if self.current_value is not None:
            return self.current_value
        if investment is not None and investment.initial_amount > 0:
            return self.amount_invested * investment.current_value / investment.initial_amount
        return self.amount_invested
