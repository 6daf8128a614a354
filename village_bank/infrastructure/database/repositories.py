"""Data access layer for loan entities"""

from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from village_bank.infrastructure.database.models import (
    GroupSettingsRow,
    LedgerRow,
    LoanEventRow,
    LoanPaymentRow,
    LoanRow,
    ProfileRow,
)
from village_bank.domain.exceptions import DuplicatePostingError, LoanNotFoundError, PersistenceError
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
    PaymentMethod,
    Principal,
    Role,
)
from village_bank.utils.date_utils import parse_timestamp


def _plain(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Store enum members by value"""
    return {key: value.value if isinstance(value, Enum) else value for key, value in fields.items()}


def to_loan(row: LoanRow) -> Loan:
    return Loan(
        id=row.id,
        group_id=row.group_id,
        circle_id=row.circle_id,
        borrower_id=row.borrower_id,
        principal=row.principal,
        status=LoanStatus(row.status),
        grace_source=GraceSource(row.grace_source),
        grace_period_days=row.grace_period_days,
        notes=row.notes,
        waitlist_position=row.waitlist_position,
        closed_reason=ClosedReason(row.closed_reason) if row.closed_reason else None,
        disbursed_by=row.disbursed_by,
        created_at=parse_timestamp(row.created_at),
        waitlisted_at=parse_timestamp(row.waitlisted_at),
        disbursed_at=parse_timestamp(row.disbursed_at),
        due_at=parse_timestamp(row.due_at),
        updated_at=parse_timestamp(row.updated_at),
    )


def to_payment(row: LoanPaymentRow) -> LoanPayment:
    return LoanPayment(
        id=row.id,
        loan_id=row.loan_id,
        amount=row.amount,
        paid_at=parse_timestamp(row.paid_at),
        method=PaymentMethod(row.method),
        created_by=row.created_by,
        note=row.note or "",
    )


def to_ledger_entry(row: LedgerRow) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        group_id=row.group_id,
        circle_id=row.circle_id,
        member_id=row.member_id,
        entry_type=LedgerEntryType(row.entry_type),
        ref_id=row.ref_id,
        amount=row.amount,
        direction=LedgerDirection(row.direction),
        created_by=row.created_by,
        description=row.description,
    )


def to_loan_event(row: LoanEventRow) -> LoanEvent:
    return LoanEvent(
        id=row.id,
        loan_id=row.loan_id,
        event_type=LoanEventType(row.event_type),
        actor_id=row.actor_id,
        data=row.data or {},
    )


class LoanRepository:
    """
    Repository for loans and everything posted alongside them.

    Writes are flushed, never committed: the caller owns the transaction
    boundary through commit()/rollback().
    """

    def __init__(self, db: Session):
        self.db = db

    # Loans

    def fetch_loans(self, group_id: str, circle_id: str, borrower_id: Optional[str] = None) -> List[Loan]:
        """Loans of a group/circle, newest first"""
        query = self.db.query(LoanRow).filter(LoanRow.group_id == group_id, LoanRow.circle_id == circle_id)
        if borrower_id is not None:
            query = query.filter(LoanRow.borrower_id == borrower_id)
        return [to_loan(row) for row in query.order_by(LoanRow.created_at.desc()).all()]

    def get_loan(self, loan_id: str, for_update: bool = False) -> Optional[Loan]:
        row = self._get_row(loan_id, for_update)
        return to_loan(row) if row else None

    def insert_loan(self, fields: Dict[str, Any]) -> Loan:
        row = LoanRow(**_plain(fields))
        self.db.add(row)
        self._flush()
        return to_loan(row)

    def update_loan(self, loan_id: str, fields: Dict[str, Any]) -> Loan:
        row = self._get_row(loan_id)
        if row is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        for key, value in _plain(fields).items():
            setattr(row, key, value)
        self._flush()
        return to_loan(row)

    # Payments, ledger, events

    def fetch_payments(self, loan_id: str) -> List[LoanPayment]:
        """Payments for a loan, most recent first"""
        rows = (
            self.db.query(LoanPaymentRow)
            .filter(LoanPaymentRow.loan_id == loan_id)
            .order_by(LoanPaymentRow.paid_at.desc())
            .all()
        )
        return [to_payment(row) for row in rows]

    def insert_payment(self, fields: Dict[str, Any]) -> LoanPayment:
        row = LoanPaymentRow(**_plain(fields))
        self.db.add(row)
        self._flush()
        return to_payment(row)

    def insert_ledger_entry(self, fields: Dict[str, Any]) -> LedgerEntry:
        row = LedgerRow(**_plain(fields))
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise DuplicatePostingError(
                f"Ledger entry {row.entry_type} already posted for {row.ref_id}"
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to post ledger entry: {e}") from e
        return to_ledger_entry(row)

    def fetch_ledger_entries(self, ref_id: str) -> List[LedgerEntry]:
        rows = self.db.query(LedgerRow).filter(LedgerRow.ref_id == ref_id).all()
        return [to_ledger_entry(row) for row in rows]

    def insert_loan_event(self, fields: Dict[str, Any]) -> LoanEvent:
        row = LoanEventRow(**_plain(fields))
        self.db.add(row)
        self._flush()
        return to_loan_event(row)

    def fetch_loan_events(self, loan_id: str) -> List[LoanEvent]:
        rows = (
            self.db.query(LoanEventRow)
            .filter(LoanEventRow.loan_id == loan_id)
            .order_by(LoanEventRow.created_at)
            .all()
        )
        return [to_loan_event(row) for row in rows]

    # Settings

    def get_group_settings(self, group_id: str) -> Optional[GroupSettings]:
        row = self.db.query(GroupSettingsRow).filter(GroupSettingsRow.group_id == group_id).first()
        if row is None:
            return None
        return GroupSettings(
            group_id=row.group_id,
            loan_interest_percent=row.loan_interest_percent,
            loan_period_days=row.loan_period_days,
            grace_period_days=row.grace_period_days,
        )

    # Transaction boundary

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        self.db.rollback()

    def _get_row(self, loan_id: str, for_update: bool = False) -> Optional[LoanRow]:
        # populate_existing so rows changed by remote procedures are re-read
        return self.db.get(
            LoanRow,
            loan_id,
            populate_existing=True,
            with_for_update=True if for_update else None,
        )

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database write failed: {e}") from e


class ProfileRoleLookup:
    """Resolves the caller's role from the profiles table"""

    def __init__(self, db: Session, user_id: Optional[str]):
        self.db = db
        self.user_id = user_id

    def current_principal(self) -> Optional[Principal]:
        """None when no user is authenticated or the profile is missing/unknown"""
        if not self.user_id:
            return None
        profile = self.db.get(ProfileRow, self.user_id)
        if profile is None:
            return None
        try:
            role = Role(profile.role)
        except ValueError:
            return None
        return Principal(user_id=profile.id, role=role)
