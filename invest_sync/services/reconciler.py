"""
Reconciler: recompute investment aggregates inside a snapshot.

Only ``total_invested`` and ``total_investors`` are rewritten, using the
same formula as the consistency validator.  Sub-company aggregates are left
as fetched.  The input snapshot is never modified; a new one is returned and
the rewrite is never sent to the server.
"""

from typing import Dict, List

from invest_sync.models import Investment, Snapshot
from invest_sync.services.consistency import expected_aggregates


def reconcile(snapshot: Snapshot) -> Snapshot:
    """Return a copy of ``snapshot`` whose investment aggregates match its positions."""
    expected = expected_aggregates(snapshot)
    investments: List[Investment] = [
        inv.model_copy(update=expected[inv.id]) for inv in snapshot.investments
    ]
    return snapshot.model_copy(update={"investments": investments})


def changed_aggregates(before: Snapshot, after: Snapshot) -> Dict[str, Dict[str, float]]:
    """Investments whose aggregates differ between two snapshots, keyed by id."""
    previous = before.investments_by_id()
    changed = {}
    for inv in after.investments:
        old = previous.get(inv.id)
        if old is None or (
            old.total_invested != inv.total_invested
            or old.total_investors != inv.total_investors
        ):
            changed[inv.id] = {
                "total_invested": inv.total_invested,
                "total_investors": inv.total_investors,
            }
    return changed
