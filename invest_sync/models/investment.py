"""
Investment domain model.

An investment opportunity published by a sub-company.  ``total_invested``,
``total_investors`` and ``current_roi`` are derived aggregates: they are
supposed to equal a function of the investor investments referencing this
investment, and are only ever checked (validator) or recomputed locally
(reconciler), never trusted as ground truth.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator

from invest_sync.models.base import Entity, coerce_id, lift_nested, none_as_zero


class InvestmentStatus(str, Enum):
    """Lifecycle status of an investment."""

    ACTIVE = "Active"
    COMPLETED = "Completed"
    PAUSED = "Paused"

    @classmethod
    def _missing_(cls, value: object) -> Optional["InvestmentStatus"]:
        # Upstream occasionally sends lowercase values ("active").
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class RiskLevel(str, Enum):
    """Ordered risk classification: Low < Medium < High < Very High."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def _missing_(cls, value: object) -> Optional["RiskLevel"]:
        if isinstance(value, str):
            key = value.replace("_", "").replace(" ", "").lower()
            for member in cls:
                if member.value.replace(" ", "").lower() == key:
                    return member
        return None


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.VERY_HIGH]


class Investment(Entity):
    """Investment opportunity with its monetary bounds and derived aggregates."""

    name: str = ""
    sub_company_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sub_company_id", "subCompanyId")
    )
    asset_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("asset_id", "assetId")
    )
    asset_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("asset_type", "assetType", "category")
    )

    initial_amount: float = Field(
        default=0.0, validation_alias=AliasChoices("initial_amount", "initialAmount")
    )
    current_value: float = Field(
        default=0.0, validation_alias=AliasChoices("current_value", "currentValue")
    )
    min_investment: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("min_investment", "minInvestment")
    )
    max_investment: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("max_investment", "maxInvestment")
    )
    expected_roi: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("expected_roi", "expectedROI")
    )
    risk_level: Optional[RiskLevel] = Field(
        default=None, validation_alias=AliasChoices("risk_level", "riskLevel")
    )
    status: InvestmentStatus = InvestmentStatus.ACTIVE

    # ── Derived, not authoritative ──
    total_invested: float = Field(
        default=0.0, validation_alias=AliasChoices("total_invested", "totalInvested")
    )
    total_investors: int = Field(
        default=0, validation_alias=AliasChoices("total_investors", "totalInvestors")
    )
    current_roi: float = Field(
        default=0.0, validation_alias=AliasChoices("current_roi", "currentROI")
    )

    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_embedded(cls, data: Any) -> Any:
        data = lift_nested(data, "asset", "type", "asset_type")
        data = lift_nested(data, "subCompany", "id", "sub_company_id")
        return data

    @field_validator("sub_company_id", "asset_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v: Any) -> Any:
        return coerce_id(v)

    @field_validator(
        "initial_amount", "current_value", "total_invested", "total_investors", "current_roi",
        mode="before",
    )
    @classmethod
    def _null_is_zero(cls, v: Any) -> Any:
        return none_as_zero(v)

    @field_validator("risk_level", mode="before")
    @classmethod
    def _unknown_risk_is_unset(cls, v: Any) -> Any:
        if v is None or isinstance(v, RiskLevel):
            return v
        try:
            return RiskLevel(v)
        except ValueError:
            return None

    def __repr__(self) -> str:
        return f"<Investment id={self.id} name='{self.name}' status={self.status.value}>"
