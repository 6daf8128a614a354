"""Role groups and the loan actions each group may perform"""

from typing import Dict, FrozenSet, Optional

from village_bank.domain.exceptions import AuthorizationError
from village_bank.domain.models import Principal, Role

MEMBER_ROLES: FrozenSet[Role] = frozenset(Role)
TREASURER_ROLES: FrozenSet[Role] = frozenset({Role.SUPERADMIN, Role.ADMIN, Role.TREASURER})
CHAIRPERSON_ROLES: FrozenSet[Role] = frozenset({Role.SUPERADMIN, Role.ADMIN, Role.CHAIRPERSON})
AUDITOR_ROLES: FrozenSet[Role] = frozenset({Role.SUPERADMIN, Role.ADMIN, Role.AUDITOR})

# action -> (allowed roles, human-readable role class for error messages)
ACTION_ROLES: Dict[str, tuple[FrozenSet[Role], str]] = {
    "request_loan": (MEMBER_ROLES, "Members"),
    "promote_waitlist": (MEMBER_ROLES, "Members"),
    "approve_loans": (CHAIRPERSON_ROLES, "Chairperson, Admin, or Super Admin"),
    "grant_grace_periods": (CHAIRPERSON_ROLES, "Chairperson, Admin, or Super Admin"),
    "disburse_loans": (TREASURER_ROLES, "Treasurer, Admin, or Super Admin"),
    "record_repayments": (TREASURER_ROLES, "Treasurer, Admin, or Super Admin"),
    "view_reports": (AUDITOR_ROLES, "Auditor, Admin, or Super Admin"),
}

ACTION_PHRASES: Dict[str, str] = {
    "request_loan": "request loans",
    "promote_waitlist": "settle the waitlist",
    "approve_loans": "approve or reject loans",
    "grant_grace_periods": "extend grace periods",
    "disburse_loans": "disburse loans",
    "record_repayments": "record loan repayments",
    "view_reports": "view loan reports",
}


def can_perform(role: Optional[Role], action: str) -> bool:
    """Unknown actions and missing roles are always denied"""
    if role is None or action not in ACTION_ROLES:
        return False
    allowed, _ = ACTION_ROLES[action]
    return role in allowed


def require_role(principal: Optional[Principal], action: str) -> Principal:
    """
    Return the principal if it may perform the action.

    Raises:
        AuthorizationError: caller is unauthenticated or its role is not allowed
    """
    if principal is None:
        raise AuthorizationError("User not authenticated")
    if not can_perform(principal.role, action):
        _, role_class = ACTION_ROLES.get(action, (frozenset(), "an authorized role"))
        phrase = ACTION_PHRASES.get(action, action)
        raise AuthorizationError(f"Only {role_class} can {phrase}")
    return principal
