# tests/test_permission_guards.py

"""
Tests for permission resolution, the route guards and /permissions.
"""

from typing import Annotated

import httpx
import pytest
from fastapi import Depends, FastAPI

from app.core.database.engine import get_db
from app.core.errors import APIError, authentication_required
from app.features.permissions.dependencies import (
    PermissionSource,
    parse_amount,
    require_any_permission,
    require_approval_limit,
    require_permission,
    resolve_permissions,
)
from app.features.roles import repository
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.main import api_error_handler


# ============================================================================
# Resolution
# ============================================================================

async def test_custom_role_wins_over_legacy(db, make_user):
    role = await repository.create_role(db, "tenant-a", "Custom", {"projects": {"view": True}})
    await db.commit()
    user = await make_user(role="ADMIN", role_id=role.id)

    resolved = await resolve_permissions(db, user)

    assert resolved.source is PermissionSource.CUSTOM_ROLE
    assert resolved.permissions == {"projects": {"view": True}}
    assert resolved.role_id == role.id
    assert resolved.role_name == "Custom"


async def test_empty_custom_tree_still_counts_as_custom(db, make_user):
    role = await repository.create_role(db, "tenant-a", "Nothing", {})
    await db.commit()
    user = await make_user(role="ADMIN", role_id=role.id)

    resolved = await resolve_permissions(db, user)

    assert resolved.source is PermissionSource.CUSTOM_ROLE
    assert resolved.granted is True
    assert resolved.permissions == {}


async def test_legacy_role_uses_template(db, make_user):
    user = await make_user(role="PROJECT_MANAGER")

    resolved = await resolve_permissions(db, user)

    assert resolved.source is PermissionSource.LEGACY_DEFAULT
    assert resolved.role_name == "PROJECT_MANAGER"
    assert resolved.permissions["transactions"]["max_approval_limit"] == 50000


async def test_missing_custom_role_falls_back_to_legacy(db):
    user = User(appwrite_id="x", email="x@example.com", name="X", role="ENGINEER", role_id="gone")

    resolved = await resolve_permissions(db, user)

    assert resolved.source is PermissionSource.LEGACY_DEFAULT
    assert resolved.role_name == "ENGINEER"


async def test_no_role_resolves_to_none(db, make_user):
    user = await make_user(role=None)

    resolved = await resolve_permissions(db, user)

    assert resolved.source is PermissionSource.NONE
    assert resolved.permissions is None
    assert resolved.granted is False


@pytest.mark.parametrize("raw, expected", [
    (None, None),
    ("", None),
    (0, 0.0),
    ("1500", 1500.0),
    (12.5, 12.5),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["lots", "NaN", "nan", "inf", "-Infinity", float("nan"), 10**400])
def test_parse_amount_rejects_garbage(raw):
    with pytest.raises(APIError) as exc_info:
        parse_amount(raw)
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Amount must be a number"


# ============================================================================
# Guards on a protected app
# ============================================================================

@pytest.fixture
def guarded_app(session_factory, auth):
    """A small app whose routes use the guards directly."""
    guarded = FastAPI()
    guarded.add_exception_handler(APIError, api_error_handler)

    @guarded.get("/wallets")
    async def wallets(user: Annotated[User, Depends(require_permission("financials.view_all_wallets"))]):
        return {"user": user.id}

    @guarded.post("/transactions")
    async def create_transaction(
        user: Annotated[User, Depends(require_any_permission(["transactions.create", "transactions.approve"]))]
    ):
        return {"user": user.id}

    @guarded.post("/approve")
    async def approve(user: Annotated[User, Depends(require_approval_limit())]):
        return {"approved": True}

    @guarded.post("/approve/{amount}")
    async def approve_path(amount: str, user: Annotated[User, Depends(require_approval_limit())]):
        return {"approved": True}

    async def _get_db():
        async with session_factory() as session:
            yield session

    async def _get_current_user() -> User:
        if auth.user is None:
            raise authentication_required()
        return auth.user

    guarded.dependency_overrides[get_db] = _get_db
    guarded.dependency_overrides[get_current_user] = _get_current_user
    return guarded


@pytest.fixture
async def guarded_client(guarded_app):
    transport = httpx.ASGITransport(app=guarded_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


async def test_single_permission_guard(guarded_client, make_user, auth):
    auth.user = await make_user(role="ACCOUNTANT")
    assert (await guarded_client.get("/wallets")).status_code == 200

    auth.user = await make_user(role="ENGINEER")
    response = await guarded_client.get("/wallets")
    assert response.status_code == 403
    assert response.json()["required"] == "financials.view_all_wallets"


async def test_any_permission_guard(guarded_client, make_user, auth, db):
    auth.user = await make_user(role="ENGINEER")
    assert (await guarded_client.post("/transactions")).status_code == 200

    role = await repository.create_role(db, "tenant-a", "Viewer", {"projects": {"view": True}})
    await db.commit()
    auth.user = await make_user(role_id=role.id)
    response = await guarded_client.post("/transactions")

    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "message": "Access Denied: Insufficient permissions",
        "required": ["transactions.create", "transactions.approve"],
    }


async def test_guard_requires_authentication(guarded_client):
    response = await guarded_client.get("/wallets")

    assert response.status_code == 401


async def test_guard_denies_user_without_role(guarded_client, make_user, auth):
    auth.user = await make_user(role=None)

    response = await guarded_client.post("/transactions")

    assert response.status_code == 403
    assert response.json()["message"] == "Access Denied: No role assigned"


async def test_super_admin_passes_every_guard(guarded_client, make_user, auth):
    auth.user = await make_user(role="SUPER_ADMIN")

    assert (await guarded_client.get("/wallets")).status_code == 200
    assert (await guarded_client.post("/transactions")).status_code == 200
    assert (await guarded_client.post("/approve", json={"amount": 10**9})).status_code == 200


async def test_approval_within_limit(guarded_client, make_user, auth):
    auth.user = await make_user(role="PROJECT_MANAGER")

    response = await guarded_client.post("/approve", json={"amount": 50000})

    assert response.status_code == 200


async def test_approval_over_limit(guarded_client, make_user, auth):
    auth.user = await make_user(role="PROJECT_MANAGER")

    response = await guarded_client.post("/approve", json={"amount": 50001})

    assert response.status_code == 403
    body = response.json()
    assert body["success"] is False
    assert body["message"] == (
        "Amount 50001 exceeds your approval limit of 50000 EGP. "
        "Please request approval from a higher authority."
    )
    assert body["limit"] == 50000
    assert body["amount"] == 50001


async def test_approval_amount_from_path(guarded_client, make_user, auth):
    auth.user = await make_user(role="ENGINEER")

    response = await guarded_client.post("/approve/250")

    assert response.status_code == 403
    assert response.json()["limit"] == 0


@pytest.mark.parametrize("body", [{}, {"amount": 0}, {"amount": None}, {"note": "no amount"}])
async def test_approval_without_amount_passes(guarded_client, make_user, auth, body):
    auth.user = await make_user(role="ENGINEER")

    response = await guarded_client.post("/approve", json=body)

    assert response.status_code == 200


async def test_approval_with_bad_amount(guarded_client, make_user, auth):
    auth.user = await make_user(role="ENGINEER")

    response = await guarded_client.post("/approve", json={"amount": "a lot"})

    assert response.status_code == 400
    assert response.json()["message"] == "Amount must be a number"


@pytest.mark.parametrize("amount", ["NaN", "nan", "Infinity"])
async def test_approval_rejects_non_finite_amount(guarded_client, make_user, auth, amount):
    """Test that NaN and infinity cannot slip past a zero limit."""
    auth.user = await make_user(role="ENGINEER")

    response = await guarded_client.post("/approve", json={"amount": amount})

    assert response.status_code == 400
    assert response.json()["message"] == "Amount must be a number"


async def test_legacy_admin_has_no_approval_limit(guarded_client, db, make_user, auth):
    role = await repository.create_role(
        db, "tenant-a", "Capped", {"transactions": {"approve": True, "max_approval_limit": 10}}
    )
    await db.commit()
    auth.user = await make_user(role="ADMIN", role_id=role.id)

    response = await guarded_client.post("/approve", json={"amount": 1000})

    assert response.status_code == 200


async def test_custom_role_limit_applies(guarded_client, db, make_user, auth):
    role = await repository.create_role(
        db, "tenant-a", "Capped", {"transactions": {"approve": True, "max_approval_limit": 10}}
    )
    await db.commit()
    auth.user = await make_user(role="PROJECT_MANAGER", role_id=role.id)

    response = await guarded_client.post("/approve", json={"amount": 11})

    assert response.status_code == 403
    assert response.json()["limit"] == 10


async def test_approval_without_role(guarded_client, make_user, auth):
    auth.user = await make_user(role=None)

    response = await guarded_client.post("/approve", json={"amount": 5})

    assert response.status_code == 403
    assert response.json()["message"] == "Access Denied: No role assigned"


# ============================================================================
# /permissions
# ============================================================================

async def test_my_permissions_legacy(client, make_user, auth):
    auth.user = await make_user(role="ENGINEER")

    response = await client.get("/permissions/me")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["source"] == "legacy_default"
    assert data["role_name"] == "ENGINEER"
    assert data["is_super_admin"] is False
    assert data["permissions"]["transactions"]["max_approval_limit"] == 0


async def test_my_permissions_custom(client, db, make_user, auth):
    role = await repository.create_role(db, "tenant-a", "Custom", {"projects": {"view": True}})
    await db.commit()
    auth.user = await make_user(role="ENGINEER", role_id=role.id)

    response = await client.get("/permissions/me")

    data = response.json()["data"]
    assert data["source"] == "custom_role"
    assert data["role_id"] == role.id
    assert data["permissions"] == {"projects": {"view": True}}


async def test_my_permissions_none(client, make_user, auth):
    auth.user = await make_user(role=None)

    response = await client.get("/permissions/me")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["source"] == "none"
    assert data["permissions"] is None


async def test_my_permissions_requires_authentication(client):
    response = await client.get("/permissions/me")

    assert response.status_code == 401


async def test_check_permission(client, make_user, auth):
    auth.user = await make_user(role="PROJECT_MANAGER")

    allowed = await client.post("/permissions/check", json={"permission": "transactions.approve"})
    denied = await client.post("/permissions/check", json={"permission": "financials.view_office_profit"})

    assert allowed.json()["data"]["allowed"] is True
    assert denied.json()["data"] == {
        "allowed": False,
        "reason": "Missing permission financials.view_office_profit",
    }


async def test_check_any_of(client, make_user, auth):
    auth.user = await make_user(role="ENGINEER")

    response = await client.post(
        "/permissions/check",
        json={"any_of": ["admin.manage_roles", "admin.manage_users"]},
    )

    data = response.json()["data"]
    assert data["allowed"] is False
    assert data["reason"] == "Missing all of admin.manage_roles, admin.manage_users"


async def test_check_amount(client, make_user, auth):
    auth.user = await make_user(role="PROJECT_MANAGER")

    within = await client.post("/permissions/check", json={"permission": "transactions.approve", "amount": 50000})
    over = await client.post("/permissions/check", json={"permission": "transactions.approve", "amount": 60000})

    assert within.json()["data"]["allowed"] is True
    data = over.json()["data"]
    assert data["allowed"] is False
    assert data["limit"] == 50000
    assert data["amount"] == 60000
    assert data["reason"].startswith("Amount 60000 exceeds your approval limit of 50000 EGP.")


async def test_check_rejects_non_finite_amount(client, make_user, auth):
    auth.user = await make_user(role="ENGINEER")

    response = await client.post("/permissions/check", json={"amount": "NaN"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request"


async def test_check_as_super_admin(client, make_user, auth):
    auth.user = await make_user(role="SUPER_ADMIN")

    response = await client.post("/permissions/check", json={"permission": "anything.at_all", "amount": 10**9})

    assert response.json()["data"]["allowed"] is True


async def test_check_without_role(client, make_user, auth):
    auth.user = await make_user(role=None)

    response = await client.post("/permissions/check", json={"permission": "projects.view"})

    assert response.json()["data"] == {"allowed": False, "reason": "No role assigned"}


async def test_check_requires_something_to_check(client, make_user, auth):
    auth.user = await make_user(role="ENGINEER")

    response = await client.post("/permissions/check", json={})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Invalid request"
    assert body["errors"]


# ============================================================================
# Error envelope
# ============================================================================

async def test_unhandled_error_returns_envelope(app):
    async def _broken_user():
        raise RuntimeError("boom")

    app.dependency_overrides[get_current_user] = _broken_user
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as broken_client:
        response = await broken_client.get("/users/me")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}


async def test_unknown_route_uses_envelope(client):
    response = await client.get("/nowhere")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}
