"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class LoanStatus(str, Enum):
    WAITLISTED = "WAITLISTED"
    ACTIVE = "ACTIVE"  # approved; disbursed_at tells whether money went out
    CLOSED = "CLOSED"
    DEFAULTED = "DEFAULTED"


class ClosedReason(str, Enum):
    REJECTED = "REJECTED"
    REPAID = "REPAID"


class GraceSource(str, Enum):
    DEFAULT = "DEFAULT"
    OVERRIDE = "OVERRIDE"
    ADJUSTED = "ADJUSTED"


class Role(str, Enum):
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    TREASURER = "TREASURER"
    CHAIRPERSON = "CHAIRPERSON"
    AUDITOR = "AUDITOR"
    MEMBER = "MEMBER"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_MONEY = "mobile_money"
    CHEQUE = "cheque"


class LedgerEntryType(str, Enum):
    LOAN_OUT = "LOAN_OUT"
    LOAN_REPAYMENT_IN = "LOAN_REPAYMENT_IN"


class LedgerDirection(str, Enum):
    IN = "IN"
    OUT = "OUT"


class LoanEventType(str, Enum):
    CREATED = "CREATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DISBURSED = "DISBURSED"
    GRACE_EXTENDED = "GRACE_EXTENDED"
    PAYMENT = "PAYMENT"
    CLOSED = "CLOSED"


@dataclass
class Principal:
    """Authenticated caller as seen by the role lookup"""

    user_id: str
    role: Role


@dataclass
class GroupSettings:
    """Per-group loan configuration (read-only for this service)"""

    group_id: str
    loan_interest_percent: float
    loan_period_days: int
    grace_period_days: int = 0


@dataclass
class Loan:
    """Credit extended to one member; amounts in whole currency units"""

    id: str
    group_id: str
    circle_id: str
    borrower_id: str
    principal: int
    status: LoanStatus
    grace_source: GraceSource = GraceSource.DEFAULT
    grace_period_days: Optional[int] = None
    notes: Optional[str] = None
    waitlist_position: Optional[int] = None
    closed_reason: Optional[ClosedReason] = None
    disbursed_by: Optional[str] = None
    created_at: Optional[datetime] = None
    waitlisted_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_disbursed(self) -> bool:
        return self.disbursed_at is not None


@dataclass
class LoanPayment:
    """Single repayment event; immutable once recorded"""

    id: str
    loan_id: str
    amount: int
    paid_at: datetime
    method: PaymentMethod
    created_by: str
    note: str = ""


@dataclass
class LedgerEntry:
    """Money movement posted alongside a loan transition"""

    id: str
    group_id: str
    circle_id: str
    member_id: Optional[str]
    entry_type: LedgerEntryType
    ref_id: str
    amount: int
    direction: LedgerDirection
    created_by: str
    description: Optional[str] = None


@dataclass
class LoanEvent:
    """Audit trail row for a loan transition"""

    id: str
    loan_id: str
    event_type: LoanEventType
    actor_id: str
    data: dict


@dataclass
class LoanTotals:
    """Computed snapshot of what a loan owes as of one instant (never persisted)"""

    due_at: datetime
    grace_end_at: datetime
    periods: int
    interest_percent: float
    loan_period_days: int
    principal: int
    gross_due: int
    paid: int
    outstanding: int
    in_grace: bool
    overdue_blocks: int
    degraded: bool = False

    @property
    def interest_amount(self) -> int:
        return self.gross_due - self.principal

    @property
    def progress_percent(self) -> float:
        if self.gross_due <= 0:
            return 100.0
        return round(self.paid / self.gross_due * 100, 1)
