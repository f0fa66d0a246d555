"""
Pydantic schemas for derived analytics.

These are plain result shapes: every field is computed from a snapshot on
demand and never stored back.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TrendGranularity(str, Enum):
    """Period used to bucket a performance trend."""

    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class CalculatedMetrics(BaseModel):
    """Portfolio totals for an optional company scope."""

    total_value: float = Field(0.0, description="Sum of current value over scoped investments")
    total_invested: float = Field(
        0.0, description="Sum of amounts invested in the scoped investments"
    )
    total_profit: float = 0.0
    total_loss: float = 0.0
    net_profit: float = 0.0
    roi: float = Field(0.0, description="net_profit / total_invested * 100, 0 when nothing invested")
    investment_count: int = 0
    investor_count: int = Field(0, description="Distinct investors in the scoped investments")
    last_updated: datetime = Field(..., description="When the underlying snapshot was taken")


class PerformanceTrend(BaseModel):
    """One period bucket of a performance trend."""

    period: str = Field(..., examples=["2025-06", "2025-Q2", "2025"])
    total_investment: float = 0.0
    total_return: float = 0.0
    net_profit: float = 0.0
    roi: float = 0.0
    investment_count: int = 0


class StatusDistribution(BaseModel):
    status: str
    count: int = 0
    total_value: float = 0.0
    percentage: float = 0.0


class PortfolioSlice(BaseModel):
    """Share of an investor's portfolio held in one asset type."""

    asset_type: str = Field(..., examples=["Real Estate", "Unknown"])
    value: float = 0.0
    percentage: float = 0.0
    count: int = 0


class TotalValue(BaseModel):
    scope_id: Optional[str] = None
    total_value: float = 0.0


class InvestmentROI(BaseModel):
    investment_id: str
    roi: float = 0.0
