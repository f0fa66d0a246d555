"""
Metrics engine: pure derivations over a :class:`Snapshot`.

Every function takes the snapshot first, performs no I/O, never mutates its
input and returns zero-valued results for empty collections.  Ratios are
zero-guarded.

Profit/loss records count towards a scope when they reference one of the
scoped investor investments, or carry no investor investment and reference
one of the scoped investments.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from invest_sync.models import (
    Investment,
    InvestorInvestment,
    ProfitLossRecord,
    Snapshot,
)
from invest_sync.schemas.analytics import (
    CalculatedMetrics,
    PerformanceTrend,
    PortfolioSlice,
    StatusDistribution,
    TrendGranularity,
)

UNKNOWN_ASSET = "Unknown"


# ── Helpers ──


def _ratio(part: float, whole: float) -> float:
    """``part / whole * 100``, or 0 when ``whole`` is not positive."""
    return (part / whole) * 100 if whole > 0 else 0.0


def scoped_investments(snapshot: Snapshot, scope_id: Optional[str] = None) -> List[Investment]:
    """Investments owned by the sub-company ``scope_id``, or all when unscoped."""
    if not scope_id:
        return list(snapshot.investments)
    return [inv for inv in snapshot.investments if inv.sub_company_id == scope_id]


def scoped_investor_investments(
    snapshot: Snapshot, investments: Iterable[Investment]
) -> List[InvestorInvestment]:
    ids = {inv.id for inv in investments}
    return [ii for ii in snapshot.investor_investments if ii.investment_id in ids]


def matching_profit_loss(
    snapshot: Snapshot,
    investments: Iterable[Investment],
    investor_investments: Iterable[InvestorInvestment],
) -> List[ProfitLossRecord]:
    investment_ids: Set[str] = {inv.id for inv in investments}
    position_ids: Set[str] = {ii.id for ii in investor_investments}
    matched = []
    for record in snapshot.profit_loss_records:
        if record.investor_investment_id is not None:
            if record.investor_investment_id in position_ids:
                matched.append(record)
        elif record.investment_id in investment_ids:
            matched.append(record)
    return matched


def period_key(moment: datetime, granularity: TrendGranularity) -> str:
    """Bucket key: ``YYYY-MM``, ``YYYY-Qn`` or ``YYYY``."""
    if granularity == TrendGranularity.MONTH:
        return f"{moment.year:04d}-{moment.month:02d}"
    if granularity == TrendGranularity.QUARTER:
        return f"{moment.year:04d}-Q{(moment.month - 1) // 3 + 1}"
    return f"{moment.year:04d}"


def _profit_and_loss(records: Iterable[ProfitLossRecord]) -> Tuple[float, float]:
    profit = loss = 0.0
    for record in records:
        profit += record.profit_amount
        loss += record.loss_amount
    return profit, loss


# ── Operations ──


def calculate_metrics(snapshot: Snapshot, scope_id: Optional[str] = None) -> CalculatedMetrics:
    investments = scoped_investments(snapshot, scope_id)
    positions = scoped_investor_investments(snapshot, investments)
    profit, loss = _profit_and_loss(matching_profit_loss(snapshot, investments, positions))

    total_invested = sum(ii.amount_invested for ii in positions)
    net_profit = profit - loss

    return CalculatedMetrics(
        total_value=sum(inv.current_value for inv in investments),
        total_invested=total_invested,
        total_profit=profit,
        total_loss=loss,
        net_profit=net_profit,
        roi=_ratio(net_profit, total_invested),
        investment_count=len(investments),
        investor_count=len({ii.investor_id for ii in positions}),
        last_updated=snapshot.taken_at,
    )


def calculate_performance_trend(
    snapshot: Snapshot,
    scope_id: Optional[str] = None,
    granularity: TrendGranularity = TrendGranularity.MONTH,
) -> List[PerformanceTrend]:
    """
    Investment and return per period, sorted by period key.

    Only periods with at least one investor investment appear; profit/loss
    booked in a period without investments is left out.  Records without
    any timestamp are skipped.
    """
    granularity = TrendGranularity(granularity)
    investments = scoped_investments(snapshot, scope_id)
    positions = scoped_investor_investments(snapshot, investments)

    invested: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    for ii in positions:
        if ii.opened_at is None:
            continue
        key = period_key(ii.opened_at, granularity)
        invested[key] = invested.get(key, 0.0) + ii.amount_invested
        counts[key] = counts.get(key, 0) + 1

    returns: Dict[str, float] = {}
    for record in matching_profit_loss(snapshot, investments, positions):
        if record.booked_at is None:
            continue
        key = period_key(record.booked_at, granularity)
        returns[key] = returns.get(key, 0.0) + record.profit_amount - record.loss_amount

    trend = []
    for key in sorted(invested):
        total_return = returns.get(key, 0.0)
        trend.append(
            PerformanceTrend(
                period=key,
                total_investment=invested[key],
                total_return=total_return,
                net_profit=total_return,
                roi=_ratio(total_return, invested[key]),
                investment_count=counts[key],
            )
        )
    return trend


def calculate_investment_status_distribution(
    snapshot: Snapshot, scope_id: Optional[str] = None
) -> List[StatusDistribution]:
    """Investments grouped by status, in first-seen order."""
    investments = scoped_investments(snapshot, scope_id)
    grand_total = sum(inv.current_value for inv in investments)

    groups: Dict[str, StatusDistribution] = {}
    for inv in investments:
        status = inv.status.value
        group = groups.setdefault(status, StatusDistribution(status=status))
        group.count += 1
        group.total_value += inv.current_value

    for group in groups.values():
        group.percentage = _ratio(group.total_value, grand_total)
    return list(groups.values())


def resolve_asset_type(snapshot: Snapshot, investment: Optional[Investment]) -> str:
    """Asset type via the assets collection, then the investment's own tag, else ``Unknown``."""
    if investment is None:
        return UNKNOWN_ASSET
    if investment.asset_id is not None:
        for asset in snapshot.assets:
            if asset.id == investment.asset_id and asset.type:
                return asset.type
    return investment.asset_type or UNKNOWN_ASSET


def calculate_portfolio_distribution(
    snapshot: Snapshot, investor_id: Optional[str] = None
) -> List[PortfolioSlice]:
    """Current value of an investor's positions grouped by asset type."""
    positions = [
        ii
        for ii in snapshot.investor_investments
        if investor_id is None or ii.investor_id == investor_id
    ]
    by_id = snapshot.investments_by_id()

    slices: Dict[str, PortfolioSlice] = {}
    total = 0.0
    for ii in positions:
        investment = by_id.get(ii.investment_id)
        value = ii.effective_value(investment)
        asset_type = resolve_asset_type(snapshot, investment)
        group = slices.setdefault(asset_type, PortfolioSlice(asset_type=asset_type))
        group.value += value
        group.count += 1
        total += value

    for group in slices.values():
        group.percentage = _ratio(group.value, total)
    return list(slices.values())


def calculate_roi(snapshot: Snapshot, investment_id: str) -> float:
    """
    Appreciation of one investment in percent.

    The baseline is ``initial_amount``, falling back to ``min_investment``;
    0 when the investment is unknown or has no positive baseline.
    """
    investment = snapshot.investments_by_id().get(str(investment_id))
    if investment is None:
        return 0.0
    baseline = investment.initial_amount or investment.min_investment or 0.0
    if baseline <= 0:
        return 0.0
    return (investment.current_value - baseline) / baseline * 100


def calculate_total_value(snapshot: Snapshot, scope_id: Optional[str] = None) -> float:
    return sum((inv.current_value for inv in scoped_investments(snapshot, scope_id)), 0.0)
