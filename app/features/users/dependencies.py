"""
FastAPI dependencies for authentication and legacy role checks.
"""
from typing import Annotated, Optional
from datetime import datetime, timezone
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import authentication_required, permission_denied
from app.features.permissions.templates import LegacyRole
from app.features.users.models import User
from app.features.users.auth import verify_jwt_token, get_appwrite_user
from app.utils import get_logger


log = get_logger(__name__)

# Missing credentials are reported through our own 401 envelope
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from the bearer token.

    This dependency:
    1. Extracts the JWT from the Authorization header (401 if absent)
    2. Decodes it and reads the Appwrite user id
    3. Looks up the local user, creating it from Appwrite on first sight
    4. Updates last_login_at

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    if credentials is None or not credentials.credentials:
        raise authentication_required()

    payload = verify_jwt_token(credentials.credentials)
    appwrite_user_id = payload.get("userId")

    if not appwrite_user_id:
        raise authentication_required()

    result = await db.execute(
        select(User).where(User.appwrite_id == appwrite_user_id)
    )
    user = result.scalar_one_or_none()

    if user is None:
        appwrite_user = await get_appwrite_user(appwrite_user_id)
        prefs = appwrite_user.get("prefs") or {}

        user = User(
            appwrite_id=appwrite_user_id,
            email=appwrite_user.get("email", ""),
            name=appwrite_user.get("name", "Unknown"),
            tenant_id=prefs.get("tenantId"),
            role=prefs.get("role"),
            last_login_at=datetime.now(timezone.utc),
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        log.info("Registered user %s from Appwrite", user.id)
    else:
        user.last_login_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(user)

    if not user.is_active:
        raise permission_denied("User account is deactivated")

    return user


def require_legacy_role(*allowed_roles: LegacyRole):
    """
    Require the caller's legacy role to be one of `allowed_roles`.

    Usage:
        @router.post("/seed-defaults")
        async def seed(user: User = Depends(require_legacy_role(LegacyRole.ADMIN))):
            ...
    """
    allowed = [role.value for role in allowed_roles]

    async def legacy_role_dependency(
        request: Request,
        user: Annotated[Optional[User], Depends(get_current_user)]
    ) -> User:
        if user is None:
            raise authentication_required()

        if user.role not in allowed:
            log.debug("User %s with role %s denied %s", user.id, user.role, request.url.path)
            raise permission_denied(
                "Access Denied. You do not have permission to perform this action.",
                required_roles=allowed,
                your_role=user.role,
            )

        return user

    return legacy_role_dependency


def get_authorization_header(request: Request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
