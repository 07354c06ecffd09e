"""
Persistence operations for tenant roles.

Every function takes the request's AsyncSession and leaves committing to the
caller (`get_db` commits when the request succeeds). Writes are flushed so
that constraint violations surface here rather than at commit time.
"""
from typing import Any, Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.features.permissions.templates import SYSTEM_ROLES, get_template
from app.features.roles.models import Role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

# Marks "argument not supplied" where None is a meaningful value
UNSET: Any = object()


class RoleRepositoryError(Exception):
    """Base class for role persistence errors."""


class DuplicateRoleName(RoleRepositoryError):
    def __init__(self, tenant_id: str, name: str):
        super().__init__(f"Role {name!r} already exists in tenant {tenant_id}")
        self.tenant_id = tenant_id
        self.name = name


class RolesAlreadyExist(RoleRepositoryError):
    def __init__(self, tenant_id: str):
        super().__init__(f"Tenant {tenant_id} already has roles")
        self.tenant_id = tenant_id


async def list_roles(db: AsyncSession, tenant_id: str) -> list[tuple[Role, int]]:
    """
    List a tenant's roles with their assigned-user counts.

    System roles come first, then roles in creation order.
    """
    user_count = (
        select(func.count(User.id))
        .where(User.role_id == Role.id)
        .correlate(Role)
        .scalar_subquery()
    )
    stmt = (
        select(Role, user_count)
        .where(Role.tenant_id == tenant_id)
        .order_by(Role.is_system.desc(), Role.created_at.asc(), Role.id.asc())
    )
    result = await db.execute(stmt)
    return [(role, count) for role, count in result.all()]


async def get_role(
    db: AsyncSession,
    tenant_id: str,
    role_id: str,
    with_users: bool = False
) -> Optional[Role]:
    """Fetch a role by id, scoped to a tenant."""
    stmt = select(Role).where(Role.id == role_id, Role.tenant_id == tenant_id)
    if with_users:
        stmt = stmt.options(selectinload(Role.users)).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_role_by_id(db: AsyncSession, role_id: str) -> Optional[Role]:
    """Fetch a role by its globally unique id, ignoring tenant scope."""
    result = await db.execute(select(Role).where(Role.id == role_id))
    return result.scalar_one_or_none()


async def find_by_name(
    db: AsyncSession,
    tenant_id: str,
    name: str,
    exclude_id: Optional[str] = None
) -> Optional[Role]:
    stmt = select(Role).where(Role.tenant_id == tenant_id, Role.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Role.id != exclude_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def count_users(db: AsyncSession, role_id: str) -> int:
    result = await db.execute(
        select(func.count(User.id)).where(User.role_id == role_id)
    )
    return result.scalar_one()


async def tenant_has_roles(db: AsyncSession, tenant_id: str) -> bool:
    result = await db.execute(
        select(Role.id).where(Role.tenant_id == tenant_id).limit(1)
    )
    return result.first() is not None


async def _flush_unique(db: AsyncSession, tenant_id: str, name: str) -> None:
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateRoleName(tenant_id, name) from e


async def create_role(
    db: AsyncSession,
    tenant_id: str,
    name: str,
    permissions: Dict[str, Any],
    description: Optional[str] = None,
    is_system: bool = False
) -> Role:
    """
    Insert a role.

    Raises:
        DuplicateRoleName: the (tenant_id, name) unique constraint was violated
    """
    role = Role(
        tenant_id=tenant_id,
        name=name,
        description=description,
        permissions=permissions,
        is_system=is_system,
    )
    db.add(role)
    await _flush_unique(db, tenant_id, name)
    await db.refresh(role)

    log.info("Created role %s (%s) in tenant %s", role.name, role.id, tenant_id)
    return role


async def update_role(
    db: AsyncSession,
    role: Role,
    name: Optional[str] = None,
    description: Optional[str] = UNSET,
    permissions: Optional[Dict[str, Any]] = None
) -> Role:
    """
    Apply only the supplied fields to a role.

    `description` may be set to None explicitly; `name` and `permissions`
    are left untouched when None.
    """
    if name is not None:
        role.name = name
    if description is not UNSET:
        role.description = description
    if permissions is not None:
        role.permissions = permissions

    await _flush_unique(db, role.tenant_id, role.name)
    await db.refresh(role)

    log.info("Updated role %s (%s) in tenant %s", role.name, role.id, role.tenant_id)
    return role


async def delete_role(db: AsyncSession, role: Role) -> None:
    await db.delete(role)
    await db.flush()
    log.info("Deleted role %s (%s) from tenant %s", role.name, role.id, role.tenant_id)


async def seed_default_roles(db: AsyncSession, tenant_id: str) -> list[Role]:
    """
    Create the four system roles for a tenant.

    Raises:
        RolesAlreadyExist: the tenant already has at least one role
    """
    if await tenant_has_roles(db, tenant_id):
        raise RolesAlreadyExist(tenant_id)

    roles = [
        Role(
            tenant_id=tenant_id,
            name=role_name,
            description=f"System default {role_name} role",
            permissions=get_template(role_name),
            is_system=True,
        )
        for role_name in SYSTEM_ROLES
    ]
    db.add_all(roles)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        # A concurrent seed won the race on the unique constraint
        raise RolesAlreadyExist(tenant_id) from e

    log.info("Seeded %d default roles for tenant %s", len(roles), tenant_id)
    return roles

