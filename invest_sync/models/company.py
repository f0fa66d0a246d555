"""
SubCompany domain model.

The aggregate fields are derived upstream from the investments scoped to the
company.  Nothing in this package recomputes them (see DESIGN.md).
"""

from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from invest_sync.models.base import Entity, none_as_zero


class SubCompany(Entity):
    """A sub-company and its server-side aggregates."""

    name: str = ""
    industry: str = ""
    status: str = "active"

    total_investments: int = Field(
        default=0, validation_alias=AliasChoices("total_investments", "totalInvestments")
    )
    total_investors: int = Field(
        default=0, validation_alias=AliasChoices("total_investors", "totalInvestors")
    )
    total_value: float = Field(
        default=0.0, validation_alias=AliasChoices("total_value", "totalValue")
    )
    profit: float = 0.0
    loss: float = 0.0
    roi: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _flatten_profit_loss(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("profitLoss"), dict):
            merged = dict(data["profitLoss"])
            merged.update({k: v for k, v in data.items() if k != "profitLoss"})
            return merged
        return data

    @field_validator(
        "total_investments", "total_investors", "total_value", "profit", "loss", "roi",
        mode="before",
    )
    @classmethod
    def _null_is_zero(cls, v: Any) -> Any:
        return none_as_zero(v)
