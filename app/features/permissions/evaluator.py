"""
Pure permission checks over a resolved permission tree.

`has_permission` only ever answers True for leaves that are exactly ``True``.
Numeric leaves such as ``transactions.max_approval_limit`` are read by the
approval-limit helpers below, never through the boolean path check.
"""
from dataclasses import dataclass
from numbers import Number
from typing import Any, Iterable, Mapping, Optional

APPROVAL_LIMIT_PATH = ("transactions", "max_approval_limit")


def has_permission(permissions: Optional[Mapping[str, Any]], path: str) -> bool:
    """
    Resolve a dotted path ("financials.view_office_profit") against a tree.

    Returns False when any segment is missing, when an intermediate value is
    not a mapping, or when the final value is anything other than ``True``.
    """
    if not permissions or not path:
        return False

    current: Any = permissions
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return False
        current = current[key]

    return current is True


def has_any_permission(permissions: Optional[Mapping[str, Any]], paths: Iterable[str]) -> bool:
    return any(has_permission(permissions, path) for path in paths)


def get_approval_limit(permissions: Optional[Mapping[str, Any]]) -> Optional[float]:
    """Read transactions.max_approval_limit; None (or absent) means unlimited."""
    current: Any = permissions or {}
    for key in APPROVAL_LIMIT_PATH:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    if isinstance(current, bool) or not isinstance(current, Number):
        return None
    return current


@dataclass(frozen=True)
class ApprovalDecision:
    allowed: bool
    amount: float
    limit: Optional[float] = None
    message: Optional[str] = None


def check_approval_limit(amount: float, permissions: Optional[Mapping[str, Any]]) -> ApprovalDecision:
    """
    Compare a requested amount against the tree's transaction approval limit.

    An amount equal to the limit is allowed; anything above it is denied.
    """
    limit = get_approval_limit(permissions)
    if limit is None:
        return ApprovalDecision(allowed=True, amount=amount)

    if amount > limit:
        return ApprovalDecision(
            allowed=False,
            amount=amount,
            limit=limit,
            message=(
                f"Amount {format_amount(amount)} exceeds your approval limit of {format_amount(limit)} EGP. "
                "Please request approval from a higher authority."
            ),
        )

    return ApprovalDecision(allowed=True, amount=amount, limit=limit)


def format_amount(value: float) -> str:
    # 50000.0 -> "50000", 12.5 -> "12.5"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
