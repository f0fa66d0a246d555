"""
Consistency endpoints.

- GET   /consistency                 Validate the current snapshot
- GET   /consistency/admin-scope     Check an admin only sees their sub-company
- POST  /consistency/reconcile       Recompute investment aggregates in the store
"""

from fastapi import APIRouter, Depends, Query

from invest_sync.api.deps import get_snapshot, get_store
from invest_sync.models import Snapshot
from invest_sync.schemas.consistency import ConsistencyReport, ReconcileResult
from invest_sync.services.consistency import validate_admin_scope, validate_consistency
from invest_sync.services.reconciler import changed_aggregates, reconcile
from invest_sync.store.entity_store import EntityStore

router = APIRouter()


@router.get("", response_model=ConsistencyReport, summary="Validate the cached snapshot")
async def get_consistency(snapshot: Snapshot = Depends(get_snapshot)) -> ConsistencyReport:
    return validate_consistency(snapshot)


@router.get(
    "/admin-scope",
    response_model=ConsistencyReport,
    summary="Validate an admin's data scope",
)
async def get_admin_scope(
    admin_user_id: str = Query(...),
    sub_company_id: str = Query(...),
    snapshot: Snapshot = Depends(get_snapshot),
) -> ConsistencyReport:
    return validate_admin_scope(snapshot, admin_user_id, sub_company_id)


@router.post(
    "/reconcile",
    response_model=ReconcileResult,
    summary="Reconcile investment aggregates",
    description=(
        "Recomputes each investment's total invested and investor count from the "
        "cached investor investments.  The rewrite is local; the next fetch "
        "replaces it.  Referential and bounds errors are still reported."
    ),
)
async def post_reconcile(store: EntityStore = Depends(get_store)) -> ReconcileResult:
    before = store.snapshot()
    after = reconcile(before)
    store.apply_reconciled(after)
    return ReconcileResult(
        updated=changed_aggregates(before, after),
        report=validate_consistency(after),
    )
