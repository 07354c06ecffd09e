"""
Role management API routes.

Every route is tenant-scoped to the caller. Managing roles needs the
`admin.manage_roles` permission; seeding the defaults needs the legacy ADMIN role.
"""
from typing import Annotated, Any, Dict, List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import not_found, permission_denied, validation_error
from app.core.responses import APIResponse, ok
from app.features.permissions.dependencies import require_permission
from app.features.permissions.templates import LegacyRole, all_templates, permission_categories
from app.features.roles import repository
from app.features.roles.repository import DuplicateRoleName, RolesAlreadyExist
from app.features.roles.schemas import (
    RoleCreate,
    RoleUpdate,
    RoleResponse,
    RoleListItem,
    RoleDetail,
    SeedResult,
)
from app.features.users.dependencies import require_legacy_role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

ManageRolesUser = Annotated[User, Depends(require_permission("admin.manage_roles"))]
Session = Annotated[AsyncSession, Depends(get_db)]

DUPLICATE_NAME_MESSAGE = "A role with this name already exists"


def _tenant_of(user: User) -> str:
    if not user.tenant_id:
        raise permission_denied("Access Denied: No tenant assigned")
    return user.tenant_id


@router.get("", response_model=APIResponse[List[RoleListItem]], response_model_exclude_unset=True)
async def list_roles(
    current_user: ManageRolesUser,
    db: Session
):
    """List the tenant's roles, system roles first, with assigned-user counts."""
    rows = await repository.list_roles(db, _tenant_of(current_user))
    roles = [
        RoleListItem.model_validate(
            {**RoleResponse.model_validate(role).model_dump(), "user_count": user_count}
        )
        for role, user_count in rows
    ]
    return ok(data=roles)


@router.get("/templates", response_model=APIResponse[Dict[str, Dict[str, Dict[str, Any]]]], response_model_exclude_unset=True)
async def get_permission_templates(current_user: ManageRolesUser):
    """The four built-in permission templates, for building new roles."""
    return ok(data=all_templates())


@router.get("/categories", response_model=APIResponse[Dict[str, Any]], response_model_exclude_unset=True)
async def get_permission_categories(current_user: ManageRolesUser):
    """Labels for each permission category and key, for the role editor."""
    return ok(data=permission_categories())


@router.post(
    "/seed-defaults",
    response_model=APIResponse[SeedResult],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def seed_default_roles(
    current_user: Annotated[User, Depends(require_legacy_role(LegacyRole.ADMIN))],
    db: Session
):
    """Create the four system roles for the caller's tenant (once)."""
    tenant_id = _tenant_of(current_user)
    try:
        roles = await repository.seed_default_roles(db, tenant_id)
    except RolesAlreadyExist:
        raise validation_error("Default roles already exist for this tenant")

    return ok(
        message=f"Created {len(roles)} default roles",
        data=SeedResult(
            count=len(roles),
            roles=[RoleResponse.model_validate(role) for role in roles],
        ),
    )


@router.get("/{role_id}", response_model=APIResponse[RoleDetail], response_model_exclude_unset=True)
async def get_role(
    role_id: str,
    current_user: ManageRolesUser,
    db: Session
):
    """Get a role with the users assigned to it."""
    role = await repository.get_role(db, _tenant_of(current_user), role_id, with_users=True)
    if role is None:
        raise not_found("Role not found")

    return ok(data=RoleDetail.model_validate(role))


@router.post(
    "",
    response_model=APIResponse[RoleResponse],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_role(
    role_in: RoleCreate,
    current_user: ManageRolesUser,
    db: Session
):
    """Create a custom role. Custom roles are never system roles."""
    tenant_id = _tenant_of(current_user)

    if not role_in.name or role_in.permissions is None:
        raise validation_error("Name and permissions are required")

    if await repository.find_by_name(db, tenant_id, role_in.name):
        raise validation_error(DUPLICATE_NAME_MESSAGE)

    try:
        role = await repository.create_role(
            db,
            tenant_id=tenant_id,
            name=role_in.name,
            description=role_in.description,
            permissions=role_in.permissions,
            is_system=False,
        )
    except DuplicateRoleName:
        raise validation_error(DUPLICATE_NAME_MESSAGE)

    return ok(data=RoleResponse.model_validate(role))


@router.put("/{role_id}", response_model=APIResponse[RoleResponse], response_model_exclude_unset=True)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    current_user: ManageRolesUser,
    db: Session
):
    """
    Update a role's name, description or permissions.

    System roles keep their permission tree; only name and description change.
    """
    tenant_id = _tenant_of(current_user)
    role = await repository.get_role(db, tenant_id, role_id)
    if role is None:
        raise not_found("Role not found")

    update_data = role_update.model_dump(exclude_unset=True)
    permissions = update_data.get("permissions")

    if role.is_system and permissions is not None:
        raise permission_denied("Cannot modify permissions of system roles. Create a custom role instead.")

    name = update_data.get("name") or None
    if name and name != role.name:
        if await repository.find_by_name(db, tenant_id, name, exclude_id=role.id):
            raise validation_error(DUPLICATE_NAME_MESSAGE)

    try:
        role = await repository.update_role(
            db,
            role,
            name=name,
            description=update_data.get("description", repository.UNSET),
            permissions=permissions,
        )
    except DuplicateRoleName:
        raise validation_error(DUPLICATE_NAME_MESSAGE)

    return ok(data=RoleResponse.model_validate(role))


@router.delete("/{role_id}", response_model=APIResponse[None], response_model_exclude_unset=True)
async def delete_role(
    role_id: str,
    current_user: ManageRolesUser,
    db: Session
):
    """Delete a custom role that no user holds."""
    role = await repository.get_role(db, _tenant_of(current_user), role_id)
    if role is None:
        raise not_found("Role not found")

    if role.is_system:
        raise permission_denied("Cannot delete system roles")

    user_count = await repository.count_users(db, role.id)
    if user_count > 0:
        raise validation_error(
            f"Cannot delete role. {user_count} user(s) are assigned to this role. "
            "Please reassign them first."
        )

    await repository.delete_role(db, role)
    return ok(message="Role deleted successfully")
