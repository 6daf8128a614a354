"""SQLAlchemy ORM models for loans, payments, ledger postings and settings"""

import uuid
from sqlalchemy import Column, String, BigInteger, Float, DateTime, Integer, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class ProfileRow(Base):
    """Member profile; only the role is read by this service"""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    full_name = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    role = Column(Text, nullable=False, default="MEMBER")
    group_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class GroupSettingsRow(Base):
    """Per-group loan configuration"""

    __tablename__ = "group_settings"

    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), nullable=False, unique=True)
    loan_interest_percent = Column(Float, nullable=False, default=20.0)
    loan_period_days = Column(Integer, nullable=False, default=30)
    grace_period_days = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LoanRow(Base):
    """Loan record from request to closure"""

    __tablename__ = "loans"

    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), nullable=False, index=True)
    circle_id = Column(String(36), nullable=False, index=True)
    borrower_id = Column(String(36), nullable=False, index=True)
    principal = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="WAITLISTED")
    closed_reason = Column(Text, nullable=True)
    grace_period_days = Column(Integer, nullable=True)
    grace_source = Column(Text, nullable=False, default="DEFAULT")
    notes = Column(Text, nullable=True)
    waitlist_position = Column(Integer, nullable=True)
    disbursed_by = Column(String(36), nullable=True)
    waitlisted_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    due_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    payments = relationship("LoanPaymentRow", back_populates="loan", cascade="all, delete-orphan")


class LoanPaymentRow(Base):
    """Repayment against a loan"""

    __tablename__ = "loan_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    loan_id = Column(String(36), ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    method = Column(Text, nullable=False)
    note = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan = relationship("LoanRow", back_populates="payments")


class LedgerRow(Base):
    """Group ledger posting; one posting per (type, reference)"""

    __tablename__ = "ledger"
    __table_args__ = (UniqueConstraint("entry_type", "ref_id", name="uq_ledger_entry_type_ref"),)

    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), nullable=False, index=True)
    circle_id = Column(String(36), nullable=False, index=True)
    member_id = Column(String(36), nullable=True)
    entry_type = Column(Text, nullable=False)
    ref_id = Column(String(36), nullable=False)
    amount = Column(BigInteger, nullable=False)
    direction = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LoanEventRow(Base):
    """Audit trail of loan transitions"""

    __tablename__ = "loan_events"

    id = Column(String(36), primary_key=True, default=new_id)
    loan_id = Column(String(36), ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    actor_id = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
