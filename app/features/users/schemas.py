"""
Pydantic schemas for user-related responses.
"""
from datetime import datetime
from pydantic import BaseModel


class UserSummary(BaseModel):
    """Minimal user information shown on a role."""
    id: str
    name: str
    email: str

    model_config = {"from_attributes": True}


class UserResponse(UserSummary):
    """Schema for the authenticated user's profile."""
    tenant_id: str | None = None
    role: str | None = None
    role_id: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
