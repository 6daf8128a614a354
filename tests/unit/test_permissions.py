"""Unit tests for role-based loan permissions"""

import pytest
from village_bank.domain.exceptions import AuthorizationError
from village_bank.domain.models import Principal, Role
from village_bank.domain.permissions import ACTION_ROLES, can_perform, require_role


@pytest.mark.parametrize(
    "role,action,allowed",
    [
        (Role.MEMBER, "request_loan", True),
        (Role.AUDITOR, "request_loan", True),
        (Role.MEMBER, "disburse_loans", False),
        (Role.TREASURER, "disburse_loans", True),
        (Role.TREASURER, "approve_loans", False),
        (Role.CHAIRPERSON, "approve_loans", True),
        (Role.CHAIRPERSON, "record_repayments", False),
        (Role.CHAIRPERSON, "grant_grace_periods", True),
        (Role.AUDITOR, "view_reports", True),
        (Role.TREASURER, "view_reports", False),
    ],
)
def test_role_matrix(role, action, allowed):
    assert can_perform(role, action) is allowed


@pytest.mark.parametrize("action", list(ACTION_ROLES))
def test_admins_can_do_everything(action):
    assert can_perform(Role.ADMIN, action)
    assert can_perform(Role.SUPERADMIN, action)


def test_unknown_action_and_missing_role_denied():
    assert can_perform(Role.SUPERADMIN, "delete_group") is False
    assert can_perform(None, "request_loan") is False


def test_require_role_returns_principal():
    principal = Principal(user_id="user-treasurer", role=Role.TREASURER)

    assert require_role(principal, "disburse_loans") is principal


def test_require_role_unauthenticated():
    with pytest.raises(AuthorizationError, match="User not authenticated"):
        require_role(None, "request_loan")


def test_require_role_names_allowed_roles():
    member = Principal(user_id="user-member", role=Role.MEMBER)

    with pytest.raises(AuthorizationError) as exc_info:
        require_role(member, "disburse_loans")

    assert str(exc_info.value) == "Only Treasurer, Admin, or Super Admin can disburse loans"
