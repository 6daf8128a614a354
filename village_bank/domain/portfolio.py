"""Loan book grouping and portfolio-level interest statistics"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from village_bank.domain.interest import Timestamp, loan_totals_for
from village_bank.domain.models import GroupSettings, Loan, LoanPayment, LoanStatus


@dataclass
class LoanBook:
    """Loans of one group/circle split the way the loan screens list them"""

    pending: List[Loan] = field(default_factory=list)
    disbursable: List[Loan] = field(default_factory=list)
    active: List[Loan] = field(default_factory=list)
    closed: List[Loan] = field(default_factory=list)
    by_borrower: Dict[str, List[Loan]] = field(default_factory=dict)


@dataclass
class PortfolioSummary:
    """Aggregate interest and repayment figures across disbursed loans"""

    total_loans: int
    waitlisted_loans: int
    active_loans: int
    closed_loans: int
    total_principal: int
    average_loan: float
    interest_outstanding: int
    interest_earned: int
    total_paid: int
    total_outstanding: int
    overdue_loans: int
    loans_in_grace: int


def categorize_loans(loans: Sequence[Loan]) -> LoanBook:
    book = LoanBook()
    for loan in loans:
        if loan.status == LoanStatus.WAITLISTED:
            book.pending.append(loan)
        elif loan.status == LoanStatus.ACTIVE:
            book.active.append(loan)
            if not loan.is_disbursed:
                book.disbursable.append(loan)
        elif loan.status == LoanStatus.CLOSED:
            book.closed.append(loan)
        book.by_borrower.setdefault(loan.borrower_id, []).append(loan)
    return book


def summarize_portfolio(
    loans: Sequence[Loan],
    group_settings: Optional[GroupSettings],
    payments_by_loan: Mapping[str, Sequence[LoanPayment]],
    as_of: Timestamp = None,
) -> PortfolioSummary:
    """
    Summarise a loan book for dashboards and reports.

    Only disbursed loans contribute money figures. Interest on active loans
    counts as outstanding, interest on closed loans as earned. A loan is
    overdue once it has accrued at least one overdue block.
    The average loan size is taken over those disbursed loans.
    """
    book = categorize_loans(loans)

    total_principal = 0
    disbursed = 0
    interest_outstanding = 0
    interest_earned = 0
    total_paid = 0
    total_outstanding = 0
    overdue = 0
    in_grace = 0

    for loan in book.active:
        if not loan.is_disbursed:
            continue
        totals = loan_totals_for(loan, group_settings, payments_by_loan.get(loan.id, ()), as_of)
        total_principal += loan.principal
        disbursed += 1
        interest_outstanding += totals.interest_amount
        total_outstanding += totals.outstanding
        total_paid += totals.paid
        if totals.overdue_blocks > 0:
            overdue += 1
        elif totals.in_grace:
            in_grace += 1

    for loan in book.closed:
        if not loan.is_disbursed:
            continue
        # closed loans stop accruing at closure
        closed_as_of = loan.updated_at or as_of
        totals = loan_totals_for(loan, group_settings, payments_by_loan.get(loan.id, ()), closed_as_of)
        total_principal += loan.principal
        disbursed += 1
        interest_earned += totals.interest_amount
        total_paid += totals.paid

    return PortfolioSummary(
        total_loans=len(loans),
        waitlisted_loans=len(book.pending),
        active_loans=len(book.active),
        closed_loans=len(book.closed),
        total_principal=total_principal,
        average_loan=round(total_principal / disbursed, 2) if disbursed else 0.0,
        interest_outstanding=interest_outstanding,
        interest_earned=interest_earned,
        total_paid=total_paid,
        total_outstanding=total_outstanding,
        overdue_loans=overdue,
        loans_in_grace=in_grace,
    )
