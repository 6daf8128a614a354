"""Unit tests for loan book grouping and portfolio statistics"""

import pytest
from datetime import datetime, timedelta, timezone
from prometheus_client import REGISTRY
from village_bank.domain.models import ClosedReason, GroupSettings, Loan, LoanPayment, LoanStatus, PaymentMethod
from village_bank.domain.portfolio import categorize_loans, summarize_portfolio

DAY_ZERO = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
GROUP = GroupSettings(group_id="group-001", loan_interest_percent=20, loan_period_days=30, grace_period_days=5)


def day(n: int) -> datetime:
    return DAY_ZERO + timedelta(days=n)


def make_loan(loan_id: str, principal: int, status: LoanStatus, borrower: str = "user-member", **kwargs) -> Loan:
    return Loan(
        id=loan_id,
        group_id="group-001",
        circle_id="circle-2026",
        borrower_id=borrower,
        principal=principal,
        status=status,
        created_at=DAY_ZERO,
        **kwargs,
    )


def make_payment(loan_id: str, amount: int) -> LoanPayment:
    return LoanPayment(
        id=f"{loan_id}-pay",
        loan_id=loan_id,
        amount=amount,
        paid_at=day(10),
        method=PaymentMethod.CASH,
        created_by="user-treasurer",
    )


@pytest.fixture
def loans():
    return [
        make_loan("overdue", 10000, LoanStatus.ACTIVE, disbursed_at=day(0)),
        make_loan("in-grace", 5000, LoanStatus.ACTIVE, borrower="user-admin", disbursed_at=day(20)),
        make_loan("approved", 2000, LoanStatus.ACTIVE),
        make_loan("waiting", 1000, LoanStatus.WAITLISTED),
        make_loan(
            "repaid",
            8000,
            LoanStatus.CLOSED,
            closed_reason=ClosedReason.REPAID,
            disbursed_at=day(0),
            updated_at=day(20),
        ),
        make_loan("rejected", 3000, LoanStatus.CLOSED, closed_reason=ClosedReason.REJECTED),
    ]


@pytest.fixture
def payments():
    return {
        "overdue": [make_payment("overdue", 3000)],
        "repaid": [make_payment("repaid", 9600)],
    }


def test_categorize_loans(loans):
    book = categorize_loans(loans)

    assert [loan.id for loan in book.pending] == ["waiting"]
    assert [loan.id for loan in book.active] == ["overdue", "in-grace", "approved"]
    assert [loan.id for loan in book.disbursable] == ["approved"]
    assert [loan.id for loan in book.closed] == ["repaid", "rejected"]
    assert [loan.id for loan in book.by_borrower["user-admin"]] == ["in-grace"]
    assert len(book.by_borrower["user-member"]) == 5


def test_summarize_portfolio(loans, payments):
    """Test figures at day 40: one loan overdue, one in grace, one repaid at day 20"""
    summary = summarize_portfolio(loans, GROUP, payments, as_of=day(40))

    assert summary.total_loans == 6
    assert summary.waitlisted_loans == 1
    assert summary.active_loans == 3
    assert summary.closed_loans == 2
    assert summary.total_principal == 23000
    assert summary.average_loan == 7666.67
    assert summary.interest_outstanding == 4000 + 1000
    assert summary.interest_earned == 1600
    assert summary.total_paid == 3000 + 9600
    assert summary.total_outstanding == 11000 + 6000
    assert summary.overdue_loans == 1
    assert summary.loans_in_grace == 1


def test_closed_loans_stop_accruing(loans, payments):
    """Test earned interest on a closed loan does not grow with as_of"""
    early = summarize_portfolio(loans, GROUP, payments, as_of=day(40))
    late = summarize_portfolio(loans, GROUP, payments, as_of=day(400))

    assert late.interest_earned == early.interest_earned
    assert late.interest_outstanding > early.interest_outstanding


def test_empty_portfolio():
    summary = summarize_portfolio([], None, {}, as_of=DAY_ZERO)

    assert summary.total_loans == 0
    assert summary.average_loan == 0.0
    assert summary.total_outstanding == 0


def test_average_loan_ignores_undisbursed_loans():
    """Test waitlisted and approved loans do not dilute the average"""
    loans = [
        make_loan("paid-out", 10000, LoanStatus.ACTIVE, disbursed_at=day(0)),
        make_loan("queued", 10000, LoanStatus.WAITLISTED),
        make_loan("approved", 4000, LoanStatus.ACTIVE),
    ]

    summary = summarize_portfolio(loans, GROUP, {}, as_of=day(1))

    assert summary.total_principal == 10000
    assert summary.average_loan == 10000.0


def test_degraded_loans_counted_in_summary():
    """Test an unreadable disbursement date is counted even outside the totals route"""
    before = REGISTRY.get_sample_value("village_bank_loan_totals_degraded_total")
    loans = [make_loan("bad-date", 10000, LoanStatus.ACTIVE, disbursed_at="31/02/2026")]

    summary = summarize_portfolio(loans, GROUP, {}, as_of=day(90))

    assert summary.loans_in_grace == 1
    assert summary.total_outstanding == 12000
    assert REGISTRY.get_sample_value("village_bank_loan_totals_degraded_total") == before + 1
