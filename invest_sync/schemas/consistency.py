"""Schemas for consistency diagnostics."""

from typing import Dict, List

from pydantic import BaseModel, Field


class ConsistencyReport(BaseModel):
    """
    Outcome of a consistency check.

    ``is_consistent`` depends on ``errors`` only; warnings are informational.
    """

    is_consistent: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ReconcileResult(BaseModel):
    """Investments whose derived totals changed during reconciliation."""

    updated: Dict[str, Dict[str, float]] = Field(
        default_factory=dict,
        description="investment id -> {total_invested, total_investors} after the rewrite",
    )
    report: ConsistencyReport
