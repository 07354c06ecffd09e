"""
Default permission templates for the built-in roles.

These are the trees copied into the four system roles when a tenant is seeded,
and the fallback for users that still carry a legacy role name instead of a
custom role. The tables are frozen at import time; callers always receive
deep copies.
"""
import copy
import enum
from types import MappingProxyType
from typing import Any, Mapping

# category -> leaf -> bool | number | None (None on a numeric leaf = unlimited)
PermissionTree = dict[str, dict[str, Any]]


class LegacyRole(str, enum.Enum):
    """Role names stored directly on users before custom roles existed."""
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    ENGINEER = "ENGINEER"
    ACCOUNTANT = "ACCOUNTANT"


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    return copy.copy(value)


DEFAULT_PERMISSIONS: Mapping[str, Mapping[str, Mapping[str, Any]]] = _freeze({
    # Company owner - full access
    "ADMIN": {
        "financials": {
            "view_operational_fund": True,
            "view_office_profit": True,
            "view_all_wallets": True,
            "view_company_stats": True,
        },
        "custody": {
            "request_funds": True,
            "authorize_transfers": True,
            "approve_receipts": True,
            "max_approval_limit": None,
        },
        "transactions": {
            "create": True,
            "approve": True,
            "record_income": True,
            "max_approval_limit": None,
        },
        "projects": {
            "create": True,
            "edit": True,
            "delete": True,
            "view": True,
            "edit_budget": True,
        },
        "inventory": {
            "create_batch": True,
            "consume_material": True,
            "view": True,
        },
        "admin": {
            "manage_users": True,
            "manage_roles": True,
            "invite_users": True,
            "change_user_roles": True,
        },
    },

    # Approval and oversight, no company profit
    "PROJECT_MANAGER": {
        "financials": {
            "view_operational_fund": True,
            "view_office_profit": False,
            "view_all_wallets": True,
            "view_company_stats": True,
        },
        "custody": {
            "request_funds": False,
            "authorize_transfers": False,
            "approve_receipts": True,
            "max_approval_limit": 50000,
        },
        "transactions": {
            "create": True,
            "approve": True,
            "record_income": False,
            "max_approval_limit": 50000,
        },
        "projects": {
            "create": False,
            "edit": True,
            "delete": False,
            "view": True,
            "edit_budget": False,
        },
        "inventory": {
            "create_batch": True,
            "consume_material": True,
            "view": True,
        },
        "admin": {
            "manage_users": False,
            "manage_roles": False,
            "invite_users": False,
            "change_user_roles": False,
        },
    },

    # Site engineer, field operations; sees only their own wallet
    "ENGINEER": {
        "financials": {
            "view_operational_fund": True,
            "view_office_profit": False,
            "view_all_wallets": False,
            "view_company_stats": False,
        },
        "custody": {
            "request_funds": True,
            "authorize_transfers": False,
            "approve_receipts": False,
            "max_approval_limit": 0,
        },
        "transactions": {
            "create": True,
            "approve": False,
            "record_income": False,
            "max_approval_limit": 0,
        },
        "projects": {
            "create": False,
            "edit": False,
            "delete": False,
            "view": True,
            "edit_budget": False,
        },
        "inventory": {
            "create_batch": True,
            "consume_material": True,
            "view": True,
        },
        "admin": {
            "manage_users": False,
            "manage_roles": False,
            "invite_users": False,
            "change_user_roles": False,
        },
    },

    # Financial management
    "ACCOUNTANT": {
        "financials": {
            "view_operational_fund": True,
            "view_office_profit": True,
            "view_all_wallets": True,
            "view_company_stats": True,
        },
        "custody": {
            "request_funds": False,
            "authorize_transfers": True,
            "approve_receipts": False,
            "max_approval_limit": None,
        },
        "transactions": {
            "create": True,
            "approve": False,
            "record_income": True,
            "max_approval_limit": 0,
        },
        "projects": {
            "create": False,
            "edit": False,
            "delete": False,
            "view": True,
            "edit_budget": False,
        },
        "inventory": {
            "create_batch": False,
            "consume_material": False,
            "view": True,
        },
        "admin": {
            "manage_users": False,
            "manage_roles": False,
            "invite_users": False,
            "change_user_roles": False,
        },
    },
})

# Seeded once per tenant, in this order; cannot be deleted
SYSTEM_ROLES: tuple[str, ...] = ("ADMIN", "PROJECT_MANAGER", "ENGINEER", "ACCOUNTANT")


def get_template(role_name: str | None) -> PermissionTree | None:
    """Return a mutable copy of a built-in template, or None for unknown names."""
    if role_name is None or role_name not in DEFAULT_PERMISSIONS:
        return None
    return _thaw(DEFAULT_PERMISSIONS[role_name])


def get_default_permissions(role_name: str | None) -> PermissionTree:
    """Template for a role name, falling back to ENGINEER for unknown names."""
    return get_template(role_name) or get_template(LegacyRole.ENGINEER.value)


def all_templates() -> dict[str, PermissionTree]:
    """All four templates, keyed by role name."""
    return {name: _thaw(DEFAULT_PERMISSIONS[name]) for name in SYSTEM_ROLES}


# Labels for the role editor UI
PERMISSION_CATEGORIES: Mapping[str, Any] = _freeze({
    "financials": {
        "label": "Financial Visibility",
        "permissions": (
            {"key": "view_operational_fund", "label": 'Can view Project "Operational Fund" (Site Budget)'},
            {"key": "view_office_profit", "label": 'Can view Project "Office Revenue" (Company Profit)', "sensitive": True},
            {"key": "view_all_wallets", "label": "Can view all engineers' custody balances"},
            {"key": "view_company_stats", "label": "Can view general company statistics"},
        ),
    },
    "custody": {
        "label": "Custody & Expenses",
        "permissions": (
            {"key": "request_funds", "label": "Can request funds (Tamweel)"},
            {"key": "authorize_transfers", "label": "Can authorize fund transfers (Give money to others)"},
            {"key": "approve_receipts", "label": "Can approve site receipts"},
            {"key": "max_approval_limit", "label": "Maximum approval limit (EGP)", "type": "number"},
        ),
    },
    "transactions": {
        "label": "Transactions",
        "permissions": (
            {"key": "create", "label": "Can create draft transactions"},
            {"key": "approve", "label": "Can approve transactions"},
            {"key": "record_income", "label": "Can record income (Client payments)"},
            {"key": "max_approval_limit", "label": "Maximum approval limit (EGP)", "type": "number"},
        ),
    },
    "projects": {
        "label": "Project Operations",
        "permissions": (
            {"key": "create", "label": "Can create projects"},
            {"key": "edit", "label": "Can edit projects"},
            {"key": "delete", "label": "Can archive/delete projects"},
            {"key": "view", "label": "Can view projects"},
            {"key": "edit_budget", "label": "Can edit project budgets"},
        ),
    },
    "inventory": {
        "label": "Inventory Management",
        "permissions": (
            {"key": "create_batch", "label": "Can create material batches"},
            {"key": "consume_material", "label": "Can consume material (Log usage)"},
            {"key": "view", "label": "Can view inventory"},
        ),
    },
    "admin": {
        "label": "Team Management",
        "permissions": (
            {"key": "manage_users", "label": "Can manage users"},
            {"key": "manage_roles", "label": "Can manage roles & permissions"},
            {"key": "invite_users", "label": "Can invite new users"},
            {"key": "change_user_roles", "label": "Can change user roles"},
        ),
    },
})


def permission_categories() -> dict[str, Any]:
    """Mutable copy of the UI category metadata (tuples become lists)."""
    return {
        name: {
            "label": category["label"],
            "permissions": [_thaw(item) for item in category["permissions"]],
        }
        for name, category in PERMISSION_CATEGORIES.items()
    }
