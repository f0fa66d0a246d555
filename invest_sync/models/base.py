"""
Shared base for snapshot entities.

Records arrive from the upstream API as loosely-typed JSON: snake_case and
camelCase keys mixed, numbers sometimes serialised as strings (DECIMAL
columns), monetary nulls.  Every entity validates into a frozen model at the
fetch boundary so that downstream calculations can rely on the shape.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Entity(BaseModel):
    """Immutable, identity-bearing record mirrored from the server."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return coerce_id(v)


def none_as_zero(value: Any) -> Any:
    """``None`` monetary values count as zero."""
    return 0 if value is None else value


def coerce_id(value: Any) -> Any:
    """Identifiers may be numeric upstream; the snapshot keys everything by ``str``."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


def lift_nested(data: Any, nested_key: str, field: str, target: str) -> Any:
    """
    Copy ``data[nested_key][field]`` to ``data[target]`` unless ``target`` is set.

    Used in ``mode="before"`` validators to flatten embedded objects such as
    ``{"role": {"id": "admin"}}`` or ``{"asset": {"type": "Stock"}}``.
    """
    if not isinstance(data, dict) or data.get(target) is not None:
        return data
    nested = data.get(nested_key)
    if isinstance(nested, dict) and nested.get(field) is not None:
        data = dict(data)
        data[target] = nested[field]
    return data
