"""Update event vocabulary shared by publishers and subscribers."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class UpdateEventType(str, Enum):
    """Named domain changes. ``DATA_REFRESH`` also fires for every other event."""

    COMPANY_ASSIGNMENT_UPDATED = "company_assignment_updated"
    COMPANY_CREATED = "company_created"
    COMPANY_UPDATED = "company_updated"
    COMPANY_DELETED = "company_deleted"
    USER_ROLE_UPDATED = "user_role_updated"
    ADMIN_APPROVAL_UPDATED = "admin_approval_updated"
    INVESTMENT_UPDATED = "investment_updated"
    INVESTOR_INVESTMENT_CREATED = "investor_investment_created"
    PROFIT_LOSS_RECORDED = "profit_loss_recorded"
    DATA_REFRESH = "data_refresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UpdateEvent(BaseModel):
    """
    A "something changed" signal.

    ``origin`` identifies the publishing bus so that a bus can ignore its own
    writes echoed back through the cross-tab channel.
    """

    model_config = ConfigDict(frozen=True)

    event_name: str
    payload: Any = None
    timestamp: datetime = Field(default_factory=_utcnow)
    source_tag: Optional[str] = None
    origin: Optional[str] = None
