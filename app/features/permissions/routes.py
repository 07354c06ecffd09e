"""
Permission introspection API routes.

Lets a client ask what the current user may do, for conditional rendering.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.responses import APIResponse, ok
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.dependencies import (
    ResolvedPermissions,
    attach_permissions,
    is_super_admin,
    resolve_permissions,
)
from app.features.permissions.evaluator import (
    check_approval_limit,
    has_any_permission,
    has_permission,
)
from app.features.permissions.schemas import (
    EffectivePermissions,
    PermissionCheckRequest,
    PermissionCheckResponse,
)
from app.features.permissions.templates import LegacyRole


router = APIRouter()


@router.get("/me", response_model=APIResponse[EffectivePermissions], response_model_exclude_unset=True)
async def get_my_permissions(
    current_user: Annotated[User, Depends(get_current_user)],
    resolved: Annotated[ResolvedPermissions, Depends(attach_permissions)]
):
    """Get the current user's effective permission tree."""
    return ok(data=EffectivePermissions(
        source=resolved.source,
        role_id=resolved.role_id,
        role_name=resolved.role_name,
        is_super_admin=is_super_admin(current_user),
        permissions=resolved.permissions,
    ))


@router.post("/check", response_model=APIResponse[PermissionCheckResponse], response_model_exclude_unset=True)
async def check_permission(
    check_request: PermissionCheckRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)]
):
    """Check whether the current user has a permission and/or may approve an amount."""
    if is_super_admin(current_user):
        return ok(data=PermissionCheckResponse(allowed=True, amount=check_request.amount))

    resolved = await resolve_permissions(db, current_user)
    if not resolved.granted:
        return ok(data=PermissionCheckResponse(allowed=False, reason="No role assigned"))

    tree = resolved.permissions
    if check_request.permission is not None and not has_permission(tree, check_request.permission):
        return ok(data=PermissionCheckResponse(allowed=False, reason=f"Missing permission {check_request.permission}"))

    if check_request.any_of and not has_any_permission(tree, check_request.any_of):
        return ok(data=PermissionCheckResponse(
            allowed=False,
            reason=f"Missing all of {', '.join(check_request.any_of)}",
        ))

    amount = check_request.amount
    if amount and current_user.role != LegacyRole.ADMIN.value:
        decision = check_approval_limit(amount, tree)
        if not decision.allowed:
            return ok(data=PermissionCheckResponse(
                allowed=False,
                reason=decision.message,
                limit=decision.limit,
                amount=decision.amount,
            ))

    return ok(data=PermissionCheckResponse(allowed=True, amount=amount))
