"""
Permission resolution and FastAPI guards.

Implements:
- Resolving a user's effective permission tree (custom role, legacy default, or none)
- FastAPI dependencies for route protection
- Approval limit enforcement for monetary actions
"""
import enum
import json
import math
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import permission_denied, validation_error
from app.features.permissions.evaluator import (
    check_approval_limit,
    has_any_permission,
    has_permission,
)
from app.features.permissions.templates import LegacyRole, get_template
from app.features.roles import repository
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


class PermissionSource(str, enum.Enum):
    CUSTOM_ROLE = "custom_role"
    LEGACY_DEFAULT = "legacy_default"
    NONE = "none"


@dataclass(frozen=True)
class ResolvedPermissions:
    source: PermissionSource
    permissions: Optional[Dict[str, Any]] = None
    role_id: Optional[str] = None
    role_name: Optional[str] = None

    @property
    def granted(self) -> bool:
        return self.source is not PermissionSource.NONE


def is_super_admin(user: User) -> bool:
    return user.role == LegacyRole.SUPER_ADMIN.value


async def resolve_permissions(db: AsyncSession, user: User) -> ResolvedPermissions:
    """
    Work out which permission tree applies to a user.

    1. A custom role (`role_id`) that still exists wins.
    2. Otherwise the default template for the legacy `role` name.
    3. Otherwise nothing; every check denies.
    """
    if user.role_id:
        role = await repository.get_role_by_id(db, user.role_id)
        if role is not None:
            return ResolvedPermissions(
                source=PermissionSource.CUSTOM_ROLE,
                permissions=role.permissions,
                role_id=role.id,
                role_name=role.name,
            )
        log.debug("User %s references missing role %s", user.id, user.role_id)

    template = get_template(user.role)
    if template is not None:
        return ResolvedPermissions(
            source=PermissionSource.LEGACY_DEFAULT,
            permissions=template,
            role_name=user.role,
        )

    return ResolvedPermissions(source=PermissionSource.NONE)


def _no_role_assigned():
    return permission_denied("Access Denied: No role assigned")


def require_permission(permission: str):
    """
    FastAPI dependency to require a single permission path.

    Usage:
        @router.get("/roles")
        async def list_roles(
            user: User = Depends(require_permission("admin.manage_roles"))
        ):
            pass

    On success the resolved tree is kept on `request.state.user_permissions`.

    Raises:
        APIError: 401 unauthenticated, 403 no role or insufficient permissions
    """
    async def permission_dependency(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
        current_user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        if is_super_admin(current_user):
            return current_user

        resolved = await resolve_permissions(db, current_user)
        if not resolved.granted:
            raise _no_role_assigned()

        if not has_permission(resolved.permissions, permission):
            log.debug("User %s denied %s", current_user.id, permission)
            raise permission_denied(
                "Access Denied: Insufficient permissions",
                required=permission,
            )

        request.state.user_permissions = resolved.permissions
        return current_user

    return permission_dependency


def require_any_permission(permissions: List[str]):
    """
    FastAPI dependency to require ANY of the listed permission paths.

    Usage:
        @router.post("/transactions")
        async def create_transaction(
            user: User = Depends(require_any_permission(["transactions.create", "transactions.approve"]))
        ):
            pass
    """
    async def permission_dependency(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
        current_user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        if is_super_admin(current_user):
            return current_user

        resolved = await resolve_permissions(db, current_user)
        if not resolved.granted:
            raise _no_role_assigned()

        if not has_any_permission(resolved.permissions, permissions):
            log.debug("User %s denied all of %s", current_user.id, permissions)
            raise permission_denied(
                "Access Denied: Insufficient permissions",
                required=list(permissions),
            )

        request.state.user_permissions = resolved.permissions
        return current_user

    return permission_dependency


def parse_amount(raw: Any) -> Optional[float]:
    """Coerce a submitted amount to float; missing or empty values return None."""
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        amount = float(raw)
    except (TypeError, ValueError, OverflowError):
        raise validation_error("Amount must be a number")
    if not math.isfinite(amount):
        raise validation_error("Amount must be a number")
    return amount


async def _requested_amount(request: Request) -> Optional[float]:
    raw = request.path_params.get("amount")
    if raw is None and request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        if isinstance(body, dict):
            raw = body.get("amount")
    return parse_amount(raw)


def _exempt_from_approval_limit(user: User, amount: Optional[float]) -> bool:
    return not amount or user.role in (LegacyRole.SUPER_ADMIN.value, LegacyRole.ADMIN.value)


def enforce_approval_limit(user: User, resolved: ResolvedPermissions, amount: Optional[float]) -> None:
    """
    Raise 403 when `amount` is above the user's transaction approval limit.

    SUPER_ADMIN and legacy ADMIN users are never limited.
    """
    if _exempt_from_approval_limit(user, amount):
        return
    if not resolved.granted:
        raise _no_role_assigned()

    decision = check_approval_limit(amount, resolved.permissions)
    if not decision.allowed:
        log.debug("User %s over approval limit: %s > %s", user.id, decision.amount, decision.limit)
        raise permission_denied(
            decision.message,
            limit=decision.limit,
            amount=decision.amount,
        )


def require_approval_limit():
    """
    FastAPI dependency checking the request's `amount` (path param or JSON body)
    against `transactions.max_approval_limit`.

    Usage:
        @router.post("/transactions/{id}/approve")
        async def approve(user: User = Depends(require_approval_limit())):
            pass
    """
    async def approval_limit_dependency(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
        current_user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        amount = await _requested_amount(request)
        if _exempt_from_approval_limit(current_user, amount):
            return current_user

        resolved = await resolve_permissions(db, current_user)
        enforce_approval_limit(current_user, resolved, amount)
        return current_user

    return approval_limit_dependency


async def attach_permissions(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)]
) -> ResolvedPermissions:
    """
    Best-effort lookup of the caller's permissions for display purposes.

    Failures are logged and reported as "no permissions"; the request goes on.
    """
    try:
        resolved = await resolve_permissions(db, current_user)
    except Exception:
        log.exception("Error attaching permissions for user %s", current_user.id)
        resolved = ResolvedPermissions(source=PermissionSource.NONE)

    request.state.user_permissions = resolved.permissions
    return resolved
