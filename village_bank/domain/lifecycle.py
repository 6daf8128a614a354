"""Loan lifecycle - role-gated transitions from waitlist to closure"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

from village_bank.config import settings
from village_bank.domain.exceptions import (
    InvalidTransitionError,
    LoanNotFoundError,
    RemoteProcedureError,
    ValidationError,
)
from village_bank.domain.interest import Timestamp, loan_totals_for
from village_bank.domain.models import (
    ClosedReason,
    GraceSource,
    GroupSettings,
    LedgerDirection,
    LedgerEntry,
    LedgerEntryType,
    Loan,
    LoanEvent,
    LoanEventType,
    LoanPayment,
    LoanStatus,
    LoanTotals,
    PaymentMethod,
    Principal,
)
from village_bank.domain.permissions import require_role
from village_bank.domain.portfolio import PortfolioSummary, summarize_portfolio
from village_bank.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

EXTEND_GRACE_PROCEDURE = "rpc_extend_grace"
SETTLE_WAITLIST_PROCEDURE = "rpc_try_settle_waitlist"


class LoanStore(Protocol):
    """Persistence for loans, payments, ledger postings and loan events"""

    def fetch_loans(self, group_id: str, circle_id: str, borrower_id: Optional[str] = None) -> List[Loan]: ...

    def get_loan(self, loan_id: str, for_update: bool = False) -> Optional[Loan]: ...

    def insert_loan(self, fields: Dict[str, Any]) -> Loan: ...

    def update_loan(self, loan_id: str, fields: Dict[str, Any]) -> Loan: ...

    def fetch_payments(self, loan_id: str) -> List[LoanPayment]: ...

    def insert_payment(self, fields: Dict[str, Any]) -> LoanPayment: ...

    def insert_ledger_entry(self, fields: Dict[str, Any]) -> LedgerEntry: ...

    def insert_loan_event(self, fields: Dict[str, Any]) -> LoanEvent: ...

    def get_group_settings(self, group_id: str) -> Optional[GroupSettings]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class RoleLookup(Protocol):
    def current_principal(self) -> Optional[Principal]: ...


class RemoteProcedures(Protocol):
    async def call(self, name: str, params: Dict[str, Any]) -> Any: ...


@dataclass
class RepaymentResult:
    """Outcome of one repayment, including the post-payment totals"""

    payment: LoanPayment
    loan: Loan
    totals: LoanTotals
    closed: bool


class LoanController:
    """
    Drives loans through WAITLISTED -> ACTIVE -> CLOSED.

    Each transition checks the caller's role before touching the store and
    runs as one unit of work: the loan row is written first, then ledger and
    event rows, and everything is committed together or rolled back.
    Remote procedures (grace extension, waitlist settlement) run outside
    that transaction.
    """

    def __init__(
        self,
        store: LoanStore,
        roles: RoleLookup,
        rpc: Optional[RemoteProcedures] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.roles = roles
        self.rpc = rpc
        self.clock = clock

    # Transitions

    async def request_loan(
        self,
        group_id: str,
        circle_id: str,
        principal: int,
        notes: str,
        grace_period_days: Optional[int] = None,
        waitlist_position: Optional[int] = None,
    ) -> Loan:
        """Create a loan request on the waitlist for the calling member"""
        caller = require_role(self.roles.current_principal(), "request_loan")

        if principal is None or principal <= 0:
            raise ValidationError("Loan amount must be greater than zero")
        if not notes or not notes.strip():
            raise ValidationError("Loan purpose is required")
        if grace_period_days is not None and grace_period_days < 0:
            raise ValidationError("Grace period days cannot be negative")

        now = self.clock()
        with self._unit_of_work():
            loan = self.store.insert_loan(
                {
                    "group_id": group_id,
                    "circle_id": circle_id,
                    "borrower_id": caller.user_id,
                    "principal": principal,
                    "status": LoanStatus.WAITLISTED,
                    "grace_period_days": grace_period_days,
                    "grace_source": GraceSource.OVERRIDE if grace_period_days is not None else GraceSource.DEFAULT,
                    "notes": notes.strip(),
                    "waitlist_position": waitlist_position,
                    "waitlisted_at": now,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            self._record_event(loan.id, LoanEventType.CREATED, caller, {"principal": principal})

        logger.info("Loan requested", extra={"loan_id": loan.id, "principal": principal})
        return loan

    async def approve_loan(self, loan_id: str, note: Optional[str] = None) -> Loan:
        return await self._review(loan_id, approve=True, note=note)

    async def reject_loan(self, loan_id: str, note: Optional[str] = None) -> Loan:
        return await self._review(loan_id, approve=False, note=note)

    async def disburse_loan(
        self,
        loan_id: str,
        method: str = PaymentMethod.CASH,
        amount: Optional[int] = None,
        note: Optional[str] = None,
    ) -> Loan:
        """
        Pay out an approved loan and post the LOAN_OUT ledger entry.

        The loan row is locked before the disbursed_at check so two
        concurrent disbursements cannot both pass it; the ledger's unique
        (entry_type, ref_id) constraint backs this up.
        """
        caller = require_role(self.roles.current_principal(), "disburse_loans")

        now = self.clock()
        with self._unit_of_work():
            loan = self._load(loan_id, for_update=True)
            self._require_status(loan, LoanStatus.ACTIVE, "disburse")
            if loan.is_disbursed:
                raise InvalidTransitionError(f"Loan {loan_id} has already been disbursed")

            payment_method = self._payment_method(method)
            amount = loan.principal if amount is None else amount
            if amount <= 0:
                raise ValidationError("Disbursement amount must be greater than zero")

            period_days = self._loan_period_days(loan.group_id)
            updated = self.store.update_loan(
                loan_id,
                {
                    "disbursed_by": caller.user_id,
                    "disbursed_at": now,
                    "due_at": now + timedelta(days=period_days),
                    "updated_at": now,
                },
            )
            self.store.insert_ledger_entry(
                {
                    "group_id": loan.group_id,
                    "circle_id": loan.circle_id,
                    "member_id": loan.borrower_id,
                    "entry_type": LedgerEntryType.LOAN_OUT,
                    "ref_id": loan.id,
                    "amount": amount,
                    "direction": LedgerDirection.OUT,
                    "created_by": caller.user_id,
                    "description": note or f"Loan disbursement ({payment_method.value})",
                }
            )
            self._record_event(
                loan.id, LoanEventType.DISBURSED, caller, {"amount": amount, "method": payment_method.value}
            )

        logger.info("Loan disbursed", extra={"loan_id": loan_id, "amount": amount})
        return updated

    async def repay_loan(
        self,
        loan_id: str,
        amount: int,
        method: str,
        note: Optional[str] = None,
    ) -> RepaymentResult:
        """
        Record a repayment, post LOAN_REPAYMENT_IN, and close the loan once
        everything paid so far covers the gross amount due right now.
        """
        caller = require_role(self.roles.current_principal(), "record_repayments")

        now = self.clock()
        with self._unit_of_work():
            loan = self._load(loan_id, for_update=True)
            self._require_status(loan, LoanStatus.ACTIVE, "repay")
            if not loan.is_disbursed:
                raise InvalidTransitionError(f"Loan {loan_id} has not been disbursed")
            if amount is None or amount <= 0:
                raise ValidationError("Repayment amount must be greater than zero")
            payment_method = self._payment_method(method)

            payment = self.store.insert_payment(
                {
                    "loan_id": loan.id,
                    "amount": amount,
                    "paid_at": now,
                    "method": payment_method,
                    "note": note or "",
                    "created_by": caller.user_id,
                }
            )
            self.store.insert_ledger_entry(
                {
                    "group_id": loan.group_id,
                    "circle_id": loan.circle_id,
                    "member_id": loan.borrower_id,
                    "entry_type": LedgerEntryType.LOAN_REPAYMENT_IN,
                    "ref_id": payment.id,
                    "amount": amount,
                    "direction": LedgerDirection.IN,
                    "created_by": caller.user_id,
                    "description": note,
                }
            )
            self._record_event(
                loan.id, LoanEventType.PAYMENT, caller, {"amount": amount, "payment_id": payment.id}
            )

            payments = self.store.fetch_payments(loan.id)
            totals = loan_totals_for(loan, self.store.get_group_settings(loan.group_id), payments, as_of=now)

            closed = totals.paid >= totals.gross_due
            if closed:
                loan = self.store.update_loan(
                    loan.id,
                    {"status": LoanStatus.CLOSED, "closed_reason": ClosedReason.REPAID, "updated_at": now},
                )
                self._record_event(loan.id, LoanEventType.CLOSED, caller, {"reason": ClosedReason.REPAID.value})

        if closed:
            logger.info("Loan fully repaid and closed", extra={"loan_id": loan_id, "paid": totals.paid})
        return RepaymentResult(payment=payment, loan=loan, totals=totals, closed=closed)

    async def extend_grace(self, loan_id: str, days: int, reason: str) -> Loan:
        """Set a new grace period through the hosted procedure and reload the loan"""
        caller = require_role(self.roles.current_principal(), "grant_grace_periods")

        if days is None or days < 0:
            raise ValidationError("Grace period days cannot be negative")
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to extend the grace period")

        loan = self._load(loan_id)
        self._require_status(loan, LoanStatus.ACTIVE, "extend grace for")

        await self._call_remote(
            EXTEND_GRACE_PROCEDURE,
            {"p_loan_id": loan_id, "p_new_grace_days": days, "p_reason": reason.strip()},
        )

        with self._unit_of_work():
            self._record_event(
                loan_id, LoanEventType.GRACE_EXTENDED, caller, {"days": days, "reason": reason.strip()}
            )
            refreshed = self._load(loan_id)
        return refreshed

    async def promote_waitlist(self, group_id: str, circle_id: str) -> bool:
        """
        Ask the hosted procedure to fund waitlisted loans.

        Returns False without calling out when nothing is waitlisted.
        """
        require_role(self.roles.current_principal(), "promote_waitlist")

        waitlisted = [
            loan
            for loan in self.store.fetch_loans(group_id, circle_id)
            if loan.status == LoanStatus.WAITLISTED
        ]
        if not waitlisted:
            return False

        await self._call_remote(SETTLE_WAITLIST_PROCEDURE, {"p_group_id": group_id, "p_circle_id": circle_id})
        return True

    # Queries

    def list_loans(self, group_id: str, circle_id: str, borrower_id: Optional[str] = None) -> List[Loan]:
        return self.store.fetch_loans(group_id, circle_id, borrower_id)

    def list_payments(self, loan_id: str) -> List[LoanPayment]:
        self._load(loan_id)
        return self.store.fetch_payments(loan_id)

    def group_settings(self, group_id: str) -> Optional[GroupSettings]:
        return self.store.get_group_settings(group_id)

    def waitlist_position(self, loan_id: str) -> Optional[int]:
        return self._load(loan_id).waitlist_position

    def loan_totals(self, loan_id: str, as_of: Timestamp = None) -> LoanTotals:
        loan = self._load(loan_id)
        return loan_totals_for(
            loan,
            self.store.get_group_settings(loan.group_id),
            self.store.fetch_payments(loan_id),
            as_of=as_of if as_of is not None else self.clock(),
        )

    def payments_by_loan(self, loans: List[Loan]) -> Dict[str, List[LoanPayment]]:
        """Payments keyed by loan id for loans already loaded"""
        return {loan.id: self.store.fetch_payments(loan.id) for loan in loans}

    def portfolio_summary(self, group_id: str, circle_id: str, as_of: Timestamp = None) -> PortfolioSummary:
        require_role(self.roles.current_principal(), "view_reports")

        loans = self.store.fetch_loans(group_id, circle_id)
        payments = self.payments_by_loan([loan for loan in loans if loan.is_disbursed])
        return summarize_portfolio(
            loans,
            self.store.get_group_settings(group_id),
            payments,
            as_of=as_of if as_of is not None else self.clock(),
        )

    # Internals

    async def _review(self, loan_id: str, approve: bool, note: Optional[str]) -> Loan:
        caller = require_role(self.roles.current_principal(), "approve_loans")

        now = self.clock()
        with self._unit_of_work():
            loan = self._load(loan_id, for_update=True)
            self._require_status(loan, LoanStatus.WAITLISTED, "approve" if approve else "reject")

            if approve:
                fields = {"status": LoanStatus.ACTIVE, "updated_at": now}
                event = LoanEventType.APPROVED
            else:
                fields = {"status": LoanStatus.CLOSED, "closed_reason": ClosedReason.REJECTED, "updated_at": now}
                event = LoanEventType.REJECTED

            updated = self.store.update_loan(loan_id, fields)
            self._record_event(loan_id, event, caller, {"note": note} if note else {})

        logger.info("Loan reviewed", extra={"loan_id": loan_id, "action": "approve" if approve else "reject"})
        return updated

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

    def _load(self, loan_id: str, for_update: bool = False) -> Loan:
        loan = self.store.get_loan(loan_id, for_update=for_update)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return loan

    @staticmethod
    def _require_status(loan: Loan, status: LoanStatus, action: str) -> None:
        if loan.status != status:
            raise InvalidTransitionError(
                f"Cannot {action} loan {loan.id}: status is {loan.status.value}, expected {status.value}"
            )

    @staticmethod
    def _payment_method(method: str) -> PaymentMethod:
        try:
            return PaymentMethod(method)
        except ValueError:
            allowed = ", ".join(m.value for m in PaymentMethod)
            raise ValidationError(f"Unknown payment method {method!r}; expected one of {allowed}") from None

    def _loan_period_days(self, group_id: str) -> int:
        group = self.store.get_group_settings(group_id)
        if group is not None and group.loan_period_days > 0:
            return group.loan_period_days
        return settings.default_loan_period_days

    def _record_event(self, loan_id: str, event_type: LoanEventType, actor: Principal, data: Dict[str, Any]) -> None:
        self.store.insert_loan_event(
            {"loan_id": loan_id, "event_type": event_type, "actor_id": actor.user_id, "data": data}
        )

    async def _call_remote(self, name: str, params: Dict[str, Any]) -> Any:
        if self.rpc is None:
            raise RemoteProcedureError(f"Remote procedure {name} is not configured")
        return await self.rpc.call(name, params)
