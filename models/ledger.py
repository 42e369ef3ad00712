"""
Ledger Models - Obligation entries, payments and carried-forward credit
Entries are never deleted; payments and credits are append-only audit rows
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime, Boolean, ForeignKey, Text, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from database import Base
from decimal import Decimal
import datetime


ZERO = Decimal("0.00")

# Entry lifecycle
PAID = "paid"
PARTIALLY_PAID = "partially-paid"
PENDING = "pending"
OVERDUE = "overdue"
FUTURE = "future"
EXEMPT = "exempt"

STATUSES = (PAID, PARTIALLY_PAID, PENDING, OVERDUE, FUTURE, EXEMPT)

# Payment flows
FEE_FLOW = "fee"
SALARY_FLOW = "salary"

SALARY_PAYMENT_TYPES = ("salary", "advance", "adjustment", "bonus", "loan", "other")


# 1. FEE ASSIGNMENT - Payer's billing configuration for one subject
class FeeAssignment(Base):
    __tablename__ = "fee_assignments"

    id = Column(Integer, primary_key=True, index=True)
    payer_id = Column(String(64), nullable=False, index=True)     # student or teacher
    subject_id = Column(String(64), nullable=False)
    subject_type = Column(String(20), nullable=False)

    start_date = Column(Date, nullable=False)                      # admission / joining date
    end_date = Column(Date, nullable=True)
    due_day = Column(Integer, nullable=True)                       # NULL = configured default

    # Modifiers applied at generation time
    discount_amount = Column(Numeric(12, 2), default=ZERO)
    is_exempt = Column(Boolean, default=False)
    remarks = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("payer_id", "subject_id", name="uq_assignment_payer_subject"),
    )


# 2. LEDGER ENTRY - One billable period (CORE TABLE)
class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    payer_id = Column(String(64), nullable=False, index=True)
    subject_id = Column(String(64), nullable=False)
    subject_type = Column(String(20), nullable=False)

    # Period
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=True)                  # NULL for one-time
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)

    # Amounts - pending = assigned - paid - credit_applied
    assigned_amount = Column(Numeric(12, 2), nullable=False, default=ZERO)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=ZERO)
    credit_applied_amount = Column(Numeric(12, 2), nullable=False, default=ZERO)
    pending_amount = Column(Numeric(12, 2), nullable=False, default=ZERO)

    # Status as of the last write only; reads reclassify with services.status.classify
    status = Column(String(20), nullable=False, default=PENDING)
    is_exempt = Column(Boolean, default=False)
    rate_version_id = Column(Integer, ForeignKey("rate_versions.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    # Optimistic lock; a stale write raises StaleDataError
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("payer_id", "subject_id", "period_start", name="uq_entry_payer_subject_period"),
        Index("ix_entry_payer_due", "payer_id", "due_date"),
    )

    rate_version = relationship("RateVersion")

    def recompute_pending(self):
        self.pending_amount = self.assigned_amount - self.paid_amount - self.credit_applied_amount

    @property
    def settled_amount(self) -> Decimal:
        return self.paid_amount + self.credit_applied_amount

    @property
    def period_label(self) -> str:
        if self.period_month is None:
            return f"{self.period_year} (one-time)"
        return f"{datetime.date(self.period_year, self.period_month, 1):%b} {self.period_year}"


# 3. PAYMENT RECORD - One clerk submission (immutable)
class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id = Column(Integer, primary_key=True, index=True)
    payer_id = Column(String(64), nullable=False, index=True)
    flow = Column(String(10), nullable=False, default=FEE_FLOW)   # fee / salary
    payment_type = Column(String(20), nullable=True, index=True)  # salary flow: salary, advance, bonus...

    # Unique Receipt Number: REC-2026-0001
    receipt_number = Column(String(30), unique=True, nullable=False, index=True)

    amount_submitted = Column(Numeric(12, 2), nullable=False)
    amount_allocated = Column(Numeric(12, 2), nullable=False, default=ZERO)
    excess_amount = Column(Numeric(12, 2), nullable=False, default=ZERO)

    # Payment Info
    payment_date = Column(Date, default=datetime.date.today)
    mode = Column(String(20), nullable=False)                      # cash, upi, card, online, cheque, bank_transfer
    transaction_id = Column(String(100), nullable=True)
    cheque_number = Column(String(50), nullable=True)
    bank_name = Column(String(100), nullable=True)
    notes = Column(String(500), nullable=True)
    payment_metadata = Column(JSON, default=dict)                  # full mode-specific payload

    # Audit Trail
    recorded_by = Column(String(50), default="Admin")
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    allocations = relationship(
        "PaymentAllocation", back_populates="payment", order_by="PaymentAllocation.id"
    )

    @property
    def entry_ids(self):
        return [a.entry_id for a in self.allocations]


# 4. PAYMENT ALLOCATION - Payment N-N LedgerEntry with the amount moved
class PaymentAllocation(Base):
    __tablename__ = "payment_allocations"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payment_records.id"), nullable=False, index=True)
    entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)

    payment = relationship("PaymentRecord", back_populates="allocations")
    entry = relationship("LedgerEntry")


# 5. CREDIT BALANCE - Excess from an overpayment
class CreditBalance(Base):
    __tablename__ = "credit_balances"

    id = Column(Integer, primary_key=True, index=True)
    payer_id = Column(String(64), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    remaining_amount = Column(Numeric(12, 2), nullable=False)
    created_from_payment_id = Column(Integer, ForeignKey("payment_records.id"), nullable=True)
    applies_from = Column(Date, nullable=True)                      # only periods starting on or after; NULL = any
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    version = Column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}

    applications = relationship(
        "CreditApplication", back_populates="credit", order_by="CreditApplication.id"
    )


# 6. CREDIT APPLICATION - Which entry consumed how much of a credit
class CreditApplication(Base):
    __tablename__ = "credit_applications"

    id = Column(Integer, primary_key=True, index=True)
    credit_id = Column(Integer, ForeignKey("credit_balances.id"), nullable=False, index=True)
    entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    applied_at = Column(DateTime, default=datetime.datetime.utcnow)

    credit = relationship("CreditBalance", back_populates="applications")
    entry = relationship("LedgerEntry")
