"""/v1/groups/{group_id}/circles/{circle_id} - loan book, summary and waitlist"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request

from village_bank.api.dependencies import get_loan_controller
from village_bank.api.errors import guarded
from village_bank.api.v1.schemas import (
    LoanBookResponse,
    LoanSchema,
    LoanTotalsSchema,
    LoanWithTotals,
    PortfolioSummarySchema,
    PromoteWaitlistResponse,
)
from village_bank.domain.interest import loan_totals_for
from village_bank.domain.lifecycle import LoanController
from village_bank.domain.portfolio import categorize_loans

router = APIRouter()


@router.get("/groups/{group_id}/circles/{circle_id}/loans", response_model=LoanBookResponse)
async def list_loans(
    group_id: str,
    circle_id: str,
    request: Request,
    borrower_id: Optional[str] = Query(None, description="Only this member's loans"),
    controller: LoanController = Depends(get_loan_controller),
):
    """
    Loans of a circle split into pending, disbursable, active and closed,
    each with totals computed against the group's settings as of now.
    """

    def build() -> LoanBookResponse:
        loans = controller.list_loans(group_id, circle_id, borrower_id)
        group_settings = controller.group_settings(group_id)
        now = controller.clock()
        book = categorize_loans(loans)
        payments = controller.payments_by_loan(loans)

        def with_totals(loan) -> LoanWithTotals:
            totals = loan_totals_for(loan, group_settings, payments[loan.id], as_of=now)
            return LoanWithTotals(
                loan=LoanSchema.model_validate(loan),
                totals=LoanTotalsSchema.model_validate(totals),
            )

        return LoanBookResponse(
            group_id=group_id,
            circle_id=circle_id,
            pending=[with_totals(loan) for loan in book.pending],
            disbursable=[with_totals(loan) for loan in book.disbursable],
            active=[with_totals(loan) for loan in book.active],
            closed=[with_totals(loan) for loan in book.closed],
        )

    return await guarded(request, "list_loans", None, build)


@router.get("/groups/{group_id}/circles/{circle_id}/loans/summary", response_model=PortfolioSummarySchema)
async def loan_summary(
    group_id: str,
    circle_id: str,
    request: Request,
    controller: LoanController = Depends(get_loan_controller),
):
    """Interest earned/outstanding and repayment figures for dashboards and reports"""
    summary = await guarded(request, "summary", None, lambda: controller.portfolio_summary(group_id, circle_id))
    return PortfolioSummarySchema.model_validate(summary)


@router.post("/groups/{group_id}/circles/{circle_id}/waitlist/promote", response_model=PromoteWaitlistResponse)
async def promote_waitlist(
    group_id: str,
    circle_id: str,
    request: Request,
    controller: LoanController = Depends(get_loan_controller),
):
    requested = await guarded(
        request, "promote_waitlist", None, lambda: controller.promote_waitlist(group_id, circle_id)
    )
    return PromoteWaitlistResponse(group_id=group_id, circle_id=circle_id, settlement_requested=requested)
