"""
Error envelopes shared by every endpoint.

Declared in ``responses=`` so the OpenAPI document lists the error payloads
produced by ``core.exceptions.add_exception_handlers`` next to the success
shape.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Envelope for every non-validation error (404, 502, 503, 500)."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Collection with id 'funds' not found"],
    )
    details: Optional[Any] = Field(
        None, description="Extra context, e.g. the collections a refresh failed for"
    )


class ValidationErrorDetail(BaseModel):
    field: str = Field(
        ...,
        description="Location of the invalid value, parts joined with ' -> '",
        examples=["body -> event_name", "query -> granularity"],
    )
    message: str = Field(..., examples=["Input should be 'month', 'quarter' or 'year'"])


class ValidationErrorResponse(BaseModel):
    """422 body: one entry per rejected query parameter or body field."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(default="Validation failed")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")
