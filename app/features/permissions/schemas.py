"""
Pydantic schemas for permission introspection.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator

from app.features.permissions.dependencies import PermissionSource


class EffectivePermissions(BaseModel):
    """The caller's resolved permissions and where they came from."""
    source: PermissionSource
    role_id: Optional[str] = None
    role_name: Optional[str] = None
    is_super_admin: bool = False
    permissions: Optional[Dict[str, Dict[str, Any]]] = None


class PermissionCheckRequest(BaseModel):
    """
    Schema for checking the caller's access.

    Give `permission` for a single path, `any_of` for an any-match check,
    and/or `amount` to test against the transaction approval limit.
    """
    permission: Optional[str] = Field(None, description="Dotted path, e.g. 'financials.view_office_profit'")
    any_of: Optional[List[str]] = Field(None, description="Passes if any listed path is granted")
    amount: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Amount to check against the approval limit")

    @model_validator(mode="after")
    def something_to_check(self):
        if self.permission is None and not self.any_of and self.amount is None:
            raise ValueError("Provide permission, any_of or amount")
        return self


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    allowed: bool
    reason: Optional[str] = None
    limit: Optional[float] = None
    amount: Optional[float] = None
