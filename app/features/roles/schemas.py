"""
Pydantic schemas for role management.
"""
from datetime import datetime
from numbers import Number
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.users.schemas import UserSummary

# bool must come first so True/False are not coerced to 1/0
PermissionValue = Union[bool, int, float, None]
PermissionTreeIn = Dict[str, Dict[str, PermissionValue]]


def validate_permission_tree(tree: Optional[Dict[str, Dict[str, Any]]]) -> Optional[Dict[str, Dict[str, Any]]]:
    """Reject empty category names and negative numeric limits."""
    if tree is None:
        return tree
    for category, leaves in tree.items():
        if not category or "." in category:
            raise ValueError(f"Invalid permission category {category!r}")
        for key, value in leaves.items():
            if not key or "." in key:
                raise ValueError(f"Invalid permission key {category}.{key!r}")
            if isinstance(value, Number) and not isinstance(value, bool) and value < 0:
                raise ValueError(f"{category}.{key} must not be negative")
    return tree


class RoleCreate(BaseModel):
    """
    Schema for creating a custom role.

    `name` and `permissions` are optional here so that a missing value is
    reported with the API's own 400 message instead of a field error.
    """
    name: Optional[str] = Field(None, max_length=100, description="Role name, unique within the tenant")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")
    permissions: Optional[PermissionTreeIn] = Field(None, description="Permission tree: category -> key -> bool | limit")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v):
        return validate_permission_tree(v)


class RoleUpdate(BaseModel):
    """Schema for updating a role. Only fields present in the body are applied."""
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    permissions: Optional[PermissionTreeIn] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v):
        return validate_permission_tree(v)


class RoleResponse(BaseModel):
    """Schema for role response."""
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    permissions: Dict[str, Dict[str, Any]]
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleListItem(RoleResponse):
    """Role with the number of users currently assigned to it."""
    user_count: int = 0


class RoleDetail(RoleResponse):
    """Role with summaries of its assigned users."""
    users: List[UserSummary] = []


class SeedResult(BaseModel):
    count: int
    roles: List[RoleResponse]
