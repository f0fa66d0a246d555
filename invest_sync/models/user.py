"""
User domain model.

Roles carry role-specific scoping: an admin is assigned exactly one
sub-company, an investor carries nothing extra, a superadmin carries none.
``role`` stays a plain string so that the consistency validator can report
an unknown role instead of the whole collection failing normalization.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator

from invest_sync.models.base import Entity, coerce_id, lift_nested


class UserRole(str, Enum):
    """Roles known to the platform."""

    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    INVESTOR = "investor"


KNOWN_ROLES = frozenset(role.value for role in UserRole)


class User(Entity):
    """Platform user with an optional sub-company scope."""

    email: str = ""
    first_name: str = Field(default="", validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(default="", validation_alias=AliasChoices("last_name", "lastName"))
    role: Optional[str] = None
    sub_company_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sub_company_id", "subCompanyId")
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_embedded(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("role"), dict):
            role = data["role"]
            data = dict(data)
            data["role"] = role.get("id") or role.get("type")
        return lift_nested(data, "subCompanyAdmin", "sub_company_id", "sub_company_id")

    @field_validator("role", mode="before")
    @classmethod
    def _normalise_role(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("sub_company_id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return coerce_id(v)

    @property
    def label(self) -> str:
        """Identity used in diagnostics: email when known, else id."""
        return self.email or self.id

    @property
    def is_investor(self) -> bool:
        return self.role == UserRole.INVESTOR.value
