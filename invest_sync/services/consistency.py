"""
Cross-entity consistency validator.

Detects, without repairing, contradictions inside a snapshot:

1. investment aggregates (``total_invested``, ``total_investors``) that do not
   match the investor investments referencing the investment;
2. investments whose current value collapsed below half of what was invested
   (warning only);
3. users with an unknown role, admins without a sub-company, investors
   without positions (warning), superadmins with a sub-company (warning);
4. investor investments pointing at missing investments or users, at
   non-investor users, or outside the investment's min/max bounds, and
   positions worth less than 30% of their amount (warning).

The validator is total: it never raises, whatever the snapshot contains.
Unset bounds (``None`` or ``0``) are not checked.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Set

from invest_sync.models import (
    KNOWN_ROLES,
    Investment,
    InvestorInvestment,
    Snapshot,
    User,
    UserRole,
)
from invest_sync.schemas.consistency import ConsistencyReport

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01
INVESTMENT_VALUE_FLOOR = 0.5
POSITION_VALUE_FLOOR = 0.3


def _fmt(amount: float) -> str:
    return f"{amount:.2f}"


def expected_aggregates(snapshot: Snapshot) -> Dict[str, Dict[str, float]]:
    """
    Recompute ``total_invested`` / ``total_investors`` per investment id.

    Shared with the reconciler so both apply the same formula.  Investments
    without positions get zeros.
    """
    invested: Dict[str, float] = defaultdict(float)
    investors: Dict[str, Set[str]] = defaultdict(set)
    for ii in snapshot.investor_investments:
        invested[ii.investment_id] += ii.amount_invested
        investors[ii.investment_id].add(ii.investor_id)

    return {
        inv.id: {
            "total_invested": invested.get(inv.id, 0.0),
            "total_investors": len(investors.get(inv.id, ())),
        }
        for inv in snapshot.investments
    }


def _check_investment_totals(
    snapshot: Snapshot, errors: List[str], warnings: List[str]
) -> None:
    expected = expected_aggregates(snapshot)
    for inv in snapshot.investments:
        label = f"Investment '{inv.name}' ({inv.id})"
        total_invested = expected[inv.id]["total_invested"]
        total_investors = expected[inv.id]["total_investors"]

        if abs(inv.total_invested - total_invested) > AMOUNT_TOLERANCE:
            errors.append(
                f"{label} has inconsistent total invested: "
                f"recorded {_fmt(inv.total_invested)}, calculated {_fmt(total_invested)}"
            )
        if inv.total_investors != total_investors:
            errors.append(
                f"{label} has inconsistent investor count: "
                f"recorded {inv.total_investors}, calculated {total_investors}"
            )
        if inv.current_value < total_invested * INVESTMENT_VALUE_FLOOR:
            warnings.append(
                f"{label} current value ({_fmt(inv.current_value)}) is significantly "
                f"lower than total invested ({_fmt(total_invested)})"
            )


def _check_users(snapshot: Snapshot, errors: List[str], warnings: List[str]) -> None:
    holders = {ii.investor_id for ii in snapshot.investor_investments}
    for user in snapshot.users:
        if not user.role:
            errors.append(f"User {user.label} has no valid role assigned")
            continue
        if user.role not in KNOWN_ROLES:
            errors.append(f"User {user.label} has unknown role '{user.role}'")
            continue

        if user.role == UserRole.ADMIN.value and not user.sub_company_id:
            errors.append(f"Admin user {user.label} has no sub-company assigned")
        elif user.role == UserRole.INVESTOR.value and user.id not in holders:
            warnings.append(f"Investor {user.label} has no investments")
        elif user.role == UserRole.SUPERADMIN.value and user.sub_company_id:
            warnings.append(
                f"Superadmin user {user.label} should not have sub-company assignment"
            )


def _check_position(
    ii: InvestorInvestment,
    investments: Dict[str, Investment],
    users: Dict[str, User],
    errors: List[str],
    warnings: List[str],
) -> None:
    label = f"Investor investment {ii.id}"
    investment = investments.get(ii.investment_id)
    user = users.get(ii.investor_id)

    if investment is None:
        errors.append(f"{label} references non-existent investment {ii.investment_id}")
    if user is None:
        errors.append(f"{label} references non-existent user {ii.investor_id}")
    if investment is None or user is None:
        return

    if not user.is_investor:
        errors.append(f"{label} references user {user.label} who is not an investor")

    if investment.min_investment and ii.amount_invested < investment.min_investment:
        errors.append(
            f"{label} amount ({_fmt(ii.amount_invested)}) is below minimum "
            f"({_fmt(investment.min_investment)})"
        )
    if investment.max_investment and ii.amount_invested > investment.max_investment:
        errors.append(
            f"{label} amount ({_fmt(ii.amount_invested)}) exceeds maximum "
            f"({_fmt(investment.max_investment)})"
        )

    current = ii.effective_value(investment)
    if current < ii.amount_invested * POSITION_VALUE_FLOOR:
        warnings.append(
            f"{label} has very low current value ({_fmt(current)}) compared to "
            f"invested amount ({_fmt(ii.amount_invested)})"
        )


def validate_consistency(snapshot: Snapshot) -> ConsistencyReport:
    """Run every check over ``snapshot``; ``is_consistent`` ignores warnings."""
    errors: List[str] = []
    warnings: List[str] = []

    _check_investment_totals(snapshot, errors, warnings)
    _check_users(snapshot, errors, warnings)
    investments = snapshot.investments_by_id()
    users = snapshot.users_by_id()
    for ii in snapshot.investor_investments:
        _check_position(ii, investments, users, errors, warnings)

    if errors:
        logger.info(
            "Consistency check found %d errors, %d warnings", len(errors), len(warnings)
        )
    return ConsistencyReport(is_consistent=not errors, errors=errors, warnings=warnings)


def validate_admin_scope(
    snapshot: Snapshot, admin_user_id: str, sub_company_id: str
) -> ConsistencyReport:
    """Report investments visible to an admin that belong to another sub-company."""
    outside = [inv for inv in snapshot.investments if inv.sub_company_id != sub_company_id]
    errors = []
    if outside:
        errors.append(
            f"Admin {admin_user_id} has access to {len(outside)} investments "
            f"outside their sub-company {sub_company_id}"
        )
    return ConsistencyReport(is_consistent=not errors, errors=errors)
