"""
ProfitLossRecord domain model.

A profit/loss booking against either an investment or an investor
investment, tagged with the reporting period it covers.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from invest_sync.models.base import Entity, coerce_id, none_as_zero


class ProfitLossPeriod(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ProfitLossPeriod"]:
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class ProfitLossRecord(Entity):
    """Profit and loss booked for one period."""

    investment_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("investment_id", "investmentId")
    )
    investor_investment_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("investor_investment_id", "investorInvestmentId"),
    )
    period: Optional[ProfitLossPeriod] = None
    profit_amount: float = Field(
        default=0.0, validation_alias=AliasChoices("profit_amount", "profitAmount")
    )
    loss_amount: float = Field(
        default=0.0, validation_alias=AliasChoices("loss_amount", "lossAmount")
    )
    net_amount: float = Field(
        default=0.0, validation_alias=AliasChoices("net_amount", "netAmount")
    )
    percentage_change: float = Field(
        default=0.0, validation_alias=AliasChoices("percentage_change", "percentageChange")
    )
    record_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("record_date", "recordDate")
    )
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    @field_validator("investment_id", "investor_investment_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v: Any) -> Any:
        return coerce_id(v)

    @field_validator(
        "profit_amount", "loss_amount", "net_amount", "percentage_change", mode="before"
    )
    @classmethod
    def _null_is_zero(cls, v: Any) -> Any:
        return none_as_zero(v)

    @field_validator("period", mode="before")
    @classmethod
    def _unknown_period_is_unset(cls, v: Any) -> Any:
        if v is None or isinstance(v, ProfitLossPeriod):
            return v
        try:
            return ProfitLossPeriod(v)
        except ValueError:
            return None

    @property
    def booked_at(self) -> Optional[datetime]:
        """Timestamp used for period bucketing: creation time, else record date."""
        return self.created_at or self.record_date
