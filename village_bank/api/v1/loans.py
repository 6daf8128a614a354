"""/v1/loans - loan requests, review, disbursement, repayment and grace"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request

from village_bank.api.dependencies import get_loan_controller
from village_bank.api.errors import guarded
from village_bank.api.v1.schemas import (
    DisburseRequest,
    ExtendGraceRequest,
    LoanCreateRequest,
    LoanSchema,
    LoanTotalsSchema,
    PaymentSchema,
    PaymentsResponse,
    RepaymentResponse,
    RepayRequest,
    ReviewRequest,
    WaitlistPositionResponse,
)
from village_bank.domain.lifecycle import LoanController
from village_bank.infrastructure.observability.metrics import loan_closed_counter

router = APIRouter()


@router.post("/loans", response_model=LoanSchema, status_code=201)
async def request_loan(
    body: LoanCreateRequest,
    request: Request,
    controller: LoanController = Depends(get_loan_controller),
):
    """Place a new loan request on the group's waitlist"""
    loan = await guarded(
        request,
        "request",
        None,
        lambda: controller.request_loan(
            group_id=body.group_id,
            circle_id=body.circle_id,
            principal=body.principal,
            notes=body.notes,
            grace_period_days=body.grace_period_days,
            waitlist_position=body.waitlist_position,
        ),
    )
    return LoanSchema.model_validate(loan)


@router.post("/loans/{loan_id}/approve", response_model=LoanSchema)
async def approve_loan(
    loan_id: str,
    request: Request,
    body: Optional[ReviewRequest] = None,
    controller: LoanController = Depends(get_loan_controller),
):
    note = body.note if body else None
    loan = await guarded(request, "approve", loan_id, lambda: controller.approve_loan(loan_id, note))
    return LoanSchema.model_validate(loan)


@router.post("/loans/{loan_id}/reject", response_model=LoanSchema)
async def reject_loan(
    loan_id: str,
    request: Request,
    body: Optional[ReviewRequest] = None,
    controller: LoanController = Depends(get_loan_controller),
):
    note = body.note if body else None
    loan = await guarded(request, "reject", loan_id, lambda: controller.reject_loan(loan_id, note))
    loan_closed_counter.labels(reason="REJECTED").inc()
    return LoanSchema.model_validate(loan)


@router.post("/loans/{loan_id}/disburse", response_model=LoanSchema)
async def disburse_loan(
    loan_id: str,
    request: Request,
    body: Optional[DisburseRequest] = None,
    controller: LoanController = Depends(get_loan_controller),
):
    """
    Pay out an approved loan.

    Sets disbursed_at/due_at and posts a LOAN_OUT ledger entry in the same
    transaction. A second disbursement of the same loan is a 409.
    """
    body = body or DisburseRequest()
    loan = await guarded(
        request,
        "disburse",
        loan_id,
        lambda: controller.disburse_loan(loan_id, method=body.method, amount=body.amount, note=body.note),
    )
    return LoanSchema.model_validate(loan)


@router.post("/loans/{loan_id}/repay", response_model=RepaymentResponse)
async def repay_loan(
    loan_id: str,
    body: RepayRequest,
    request: Request,
    controller: LoanController = Depends(get_loan_controller),
):
    """
    Record a repayment.

    The loan is closed in the same transaction once total payments reach
    the gross amount due at the time of this payment.
    """
    result = await guarded(
        request,
        "repay",
        loan_id,
        lambda: controller.repay_loan(loan_id, amount=body.amount, method=body.method, note=body.note),
    )
    if result.closed:
        loan_closed_counter.labels(reason="REPAID").inc()
    return RepaymentResponse(
        payment=PaymentSchema.model_validate(result.payment),
        loan=LoanSchema.model_validate(result.loan),
        totals=LoanTotalsSchema.model_validate(result.totals),
        closed=result.closed,
    )


@router.post("/loans/{loan_id}/extend-grace", response_model=LoanSchema)
async def extend_grace(
    loan_id: str,
    body: ExtendGraceRequest,
    request: Request,
    controller: LoanController = Depends(get_loan_controller),
):
    loan = await guarded(
        request, "extend_grace", loan_id, lambda: controller.extend_grace(loan_id, body.days, body.reason)
    )
    return LoanSchema.model_validate(loan)


@router.get("/loans/{loan_id}/totals", response_model=LoanTotalsSchema)
async def get_loan_totals(
    loan_id: str,
    request: Request,
    as_of: Optional[datetime] = Query(None, description="Evaluation instant; defaults to now"),
    controller: LoanController = Depends(get_loan_controller),
):
    """Interest, amount due and grace status as of the given instant"""
    totals = await guarded(request, "totals", loan_id, lambda: controller.loan_totals(loan_id, as_of))
    return LoanTotalsSchema.model_validate(totals)


@router.get("/loans/{loan_id}/payments", response_model=PaymentsResponse)
async def get_loan_payments(
    loan_id: str,
    request: Request,
    controller: LoanController = Depends(get_loan_controller),
):
    payments = await guarded(request, "payments", loan_id, lambda: controller.list_payments(loan_id))
    return PaymentsResponse(loan_id=loan_id, payments=[PaymentSchema.model_validate(p) for p in payments])


@router.get("/loans/{loan_id}/waitlist-position", response_model=WaitlistPositionResponse)
async def get_waitlist_position(
    loan_id: str,
    request: Request,
    controller: LoanController = Depends(get_loan_controller),
):
    position = await guarded(request, "waitlist_position", loan_id, lambda: controller.waitlist_position(loan_id))
    return WaitlistPositionResponse(loan_id=loan_id, waitlist_position=position)
