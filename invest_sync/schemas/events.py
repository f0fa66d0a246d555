"""Schemas for publishing update events over HTTP."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from invest_sync.events.types import UpdateEventType


class PublishEventRequest(BaseModel):
    event_name: UpdateEventType
    payload: Any = None
    source_tag: Optional[str] = Field(None, examples=["company-management"])
    debounce: bool = Field(
        False, description="Coalesce with identical publishes inside the debounce window"
    )


class PublishEventResponse(BaseModel):
    event_name: str
    source_tag: Optional[str] = None
    debounced: bool = False
    timestamp: Optional[datetime] = Field(
        None, description="Publish time; unset while the publish is still debounced"
    )
