"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

from village_bank.domain.models import ClosedReason, GraceSource, LoanStatus, PaymentMethod


class LoanCreateRequest(BaseModel):
    """Request body for POST /v1/loans"""

    group_id: str = Field(..., min_length=1)
    circle_id: str = Field(..., min_length=1)
    principal: int = Field(..., gt=0, description="Requested amount in whole currency units")
    notes: str = Field(..., min_length=1, description="Purpose of the loan")
    grace_period_days: Optional[int] = Field(None, ge=0, description="Overrides the group default")
    waitlist_position: Optional[int] = Field(None, ge=1)


class ReviewRequest(BaseModel):
    """Request body for approve/reject"""

    note: Optional[str] = None


class DisburseRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/disburse"""

    method: PaymentMethod = PaymentMethod.CASH
    amount: Optional[int] = Field(None, gt=0, description="Defaults to the principal")
    note: Optional[str] = None


class RepayRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/repay"""

    amount: int = Field(..., gt=0)
    method: PaymentMethod
    note: Optional[str] = None


class ExtendGraceRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/extend-grace"""

    days: int = Field(..., ge=0, description="New grace period length in days")
    reason: str = Field(..., min_length=1)


class LoanSchema(BaseModel):
    """Loan as stored"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    group_id: str
    circle_id: str
    borrower_id: str
    principal: int
    status: LoanStatus
    closed_reason: Optional[ClosedReason] = None
    grace_period_days: Optional[int] = None
    grace_source: GraceSource
    notes: Optional[str] = None
    waitlist_position: Optional[int] = None
    disbursed_by: Optional[str] = None
    created_at: Optional[datetime] = None
    waitlisted_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoanTotalsSchema(BaseModel):
    """Computed totals for one loan at one instant"""

    model_config = ConfigDict(from_attributes=True)

    due_at: datetime
    grace_end_at: datetime
    periods: int
    interest_percent: float
    loan_period_days: int
    principal: int
    gross_due: int
    interest_amount: int
    paid: int
    outstanding: int
    in_grace: bool
    overdue_blocks: int
    progress_percent: float
    degraded: bool


class LoanWithTotals(BaseModel):
    loan: LoanSchema
    totals: LoanTotalsSchema


class PaymentSchema(BaseModel):
    """Single repayment"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    loan_id: str
    amount: int
    paid_at: datetime
    method: PaymentMethod
    note: str = ""
    created_by: str


class PaymentsResponse(BaseModel):
    loan_id: str
    payments: List[PaymentSchema]


class RepaymentResponse(BaseModel):
    """Response for POST /v1/loans/{loan_id}/repay"""

    payment: PaymentSchema
    loan: LoanSchema
    totals: LoanTotalsSchema
    closed: bool


class LoanBookResponse(BaseModel):
    """Loans of a group/circle, split by lifecycle stage"""

    group_id: str
    circle_id: str
    pending: List[LoanWithTotals]
    disbursable: List[LoanWithTotals]
    active: List[LoanWithTotals]
    closed: List[LoanWithTotals]


class PortfolioSummarySchema(BaseModel):
    """Response for GET .../loans/summary"""

    model_config = ConfigDict(from_attributes=True)

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


class WaitlistPositionResponse(BaseModel):
    loan_id: str
    waitlist_position: Optional[int] = None


class PromoteWaitlistResponse(BaseModel):
    group_id: str
    circle_id: str
    settlement_requested: bool
