"""
Metrics endpoints.  Every call recomputes from the current snapshot.

- GET /metrics                                Portfolio totals
- GET /metrics/trend                          Per-period investment and return
- GET /metrics/status-distribution            Investments by status
- GET /metrics/portfolio-distribution         Investor positions by asset type
- GET /metrics/total-value                    Sum of current values
- GET /metrics/investments/{id}/roi           Appreciation of one investment
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from invest_sync.api.deps import get_snapshot
from invest_sync.models import Snapshot
from invest_sync.schemas.analytics import (
    CalculatedMetrics,
    InvestmentROI,
    PerformanceTrend,
    PortfolioSlice,
    StatusDistribution,
    TotalValue,
    TrendGranularity,
)
from invest_sync.services import metrics

router = APIRouter()

SCOPE_QUERY = Query(None, description="Restrict to investments of this sub-company")


@router.get("", response_model=CalculatedMetrics, summary="Portfolio totals")
async def get_metrics(
    scope_id: Optional[str] = SCOPE_QUERY,
    snapshot: Snapshot = Depends(get_snapshot),
) -> CalculatedMetrics:
    return metrics.calculate_metrics(snapshot, scope_id)


@router.get("/trend", response_model=List[PerformanceTrend], summary="Performance trend")
async def get_performance_trend(
    scope_id: Optional[str] = SCOPE_QUERY,
    granularity: TrendGranularity = Query(TrendGranularity.MONTH),
    snapshot: Snapshot = Depends(get_snapshot),
) -> List[PerformanceTrend]:
    return metrics.calculate_performance_trend(snapshot, scope_id, granularity)


@router.get(
    "/status-distribution",
    response_model=List[StatusDistribution],
    summary="Investment status distribution",
)
async def get_status_distribution(
    scope_id: Optional[str] = SCOPE_QUERY,
    snapshot: Snapshot = Depends(get_snapshot),
) -> List[StatusDistribution]:
    return metrics.calculate_investment_status_distribution(snapshot, scope_id)


@router.get(
    "/portfolio-distribution",
    response_model=List[PortfolioSlice],
    summary="Portfolio distribution by asset type",
)
async def get_portfolio_distribution(
    investor_id: Optional[str] = Query(None, description="Only this investor's positions"),
    snapshot: Snapshot = Depends(get_snapshot),
) -> List[PortfolioSlice]:
    return metrics.calculate_portfolio_distribution(snapshot, investor_id)


@router.get("/total-value", response_model=TotalValue, summary="Total current value")
async def get_total_value(
    scope_id: Optional[str] = SCOPE_QUERY,
    snapshot: Snapshot = Depends(get_snapshot),
) -> TotalValue:
    return TotalValue(
        scope_id=scope_id, total_value=metrics.calculate_total_value(snapshot, scope_id)
    )


@router.get(
    "/investments/{investment_id}/roi",
    response_model=InvestmentROI,
    summary="ROI of one investment",
    description="Returns 0 for unknown investments or investments without a positive baseline.",
)
async def get_investment_roi(
    investment_id: str,
    snapshot: Snapshot = Depends(get_snapshot),
) -> InvestmentROI:
    return InvestmentROI(
        investment_id=investment_id, roi=metrics.calculate_roi(snapshot, investment_id)
    )
