"""Schemas for collection state and refresh endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CollectionResponse(BaseModel):
    """Cached contents of one collection and its fetch state."""

    name: str
    items: List[Dict[str, Any]] = Field(default_factory=list)
    loading: bool = False
    error: Optional[str] = Field(None, description="Last fetch error; data shown is the last good copy")
    last_fetched_at: Optional[float] = Field(None, description="Epoch seconds of the last successful fetch")
    stale: bool = True


class RefreshResponse(BaseModel):
    name: str
    outcome: str = Field(..., examples=["fetched", "skipped", "failed"])
    error: Optional[str] = None
