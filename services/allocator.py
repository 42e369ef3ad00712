"""
Payment Allocator - applies a clerk's payment to selected ledger entries.

Two flows share the allocation rules (oldest due first, each entry takes
min(remaining, pending)) but treat overpayment differently:

* fee collection rejects any amount above the selected entries' pending total;
* salary payment caps the target period at its pending amount and turns the
  rest into credit, which is applied at once to the teacher's unpaid periods
  that start after the paid one.

Everything runs inside the payer's serialized scope, so validation failures
leave no trace and concurrent payments cannot both spend the same pending
amount.
"""
from dataclasses import dataclass, field
from decimal import Decimal
import datetime
import logging

from sqlalchemy.orm import Session

from config import settings
from models.fee_models import ReceiptCounter
from models.ledger import (
    LedgerEntry, PaymentRecord, PaymentAllocation, ZERO, FEE_FLOW, SALARY_FLOW, FUTURE,
    SALARY_PAYMENT_TYPES,
)
from models.rate_versions import SALARY
from services import credits
from services.errors import (
    ValidationError, EntryNotFound, PayerMismatch, FuturePeriodNotPayable, OverAllocation,
)
from services.locks import serialized
from services.money import to_money
from services.status import classify

logger = logging.getLogger(__name__)

SALARY_RECEIPT_PREFIX = "SAL"


@dataclass
class AllocationResult:
    payment: PaymentRecord
    entries: list


@dataclass
class SalaryPaymentResult:
    payment: PaymentRecord
    entries: list
    excess_amount: Decimal = ZERO
    credit_applied: list = field(default_factory=list)   # [(LedgerEntry, amount)]
    remaining_credit: Decimal = ZERO

    @property
    def amount_applied(self) -> Decimal:
        return sum((amount for _, amount in self.credit_applied), ZERO)

    @property
    def periods_applied(self):
        return list(dict.fromkeys(entry.period_label for entry, _ in self.credit_applied))


def generate_receipt_number(db: Session, payment_date: datetime.date, prefix: str = None) -> str:
    """Next receipt number for the year: REC-2026-0001"""
    prefix = prefix or settings.RECEIPT_PREFIX
    year = payment_date.year

    counter = (
        db.query(ReceiptCounter)
        .filter(ReceiptCounter.prefix == prefix, ReceiptCounter.year == year)
        .with_for_update()
        .first()
    )
    if not counter:
        counter = ReceiptCounter(prefix=prefix, year=year, last_number=0)
        db.add(counter)

    counter.last_number += 1
    db.flush()

    return f"{prefix}-{year}-{str(counter.last_number).zfill(4)}"


def _validate_metadata(metadata: dict) -> dict:
    if not metadata or not metadata.get("mode"):
        raise ValidationError("Payment mode is required")
    return metadata


def _payment_date(metadata: dict, as_of: datetime.date) -> datetime.date:
    value = metadata.get("payment_date")
    if value is None:
        return as_of
    if isinstance(value, str):
        return datetime.date.fromisoformat(value)
    return value


def _new_payment(db, payer_id, flow, amount, metadata, as_of, recorded_by, prefix=None):
    payment_date = _payment_date(metadata, as_of)
    payment = PaymentRecord(
        payer_id=payer_id,
        flow=flow,
        receipt_number=generate_receipt_number(db, payment_date, prefix),
        amount_submitted=amount,
        payment_date=payment_date,
        mode=metadata["mode"],
        transaction_id=metadata.get("transaction_id"),
        cheque_number=metadata.get("cheque_number"),
        bank_name=metadata.get("bank_name"),
        notes=metadata.get("notes"),
        payment_metadata={k: (v.isoformat() if isinstance(v, datetime.date) else v)
                          for k, v in metadata.items()},
        recorded_by=recorded_by,
    )
    db.add(payment)
    return payment


def _allocate(db, payment, entries, amount, as_of) -> Decimal:
    """Spread `amount` over `entries` oldest due first; returns what was allocated."""
    remaining = amount
    for entry in sorted(entries, key=lambda e: (e.due_date, e.id)):
        if remaining <= 0:
            break
        share = min(remaining, entry.pending_amount)
        if share <= 0:
            continue
        entry.paid_amount += share
        entry.recompute_pending()
        entry.status = classify(entry, as_of)
        db.add(PaymentAllocation(payment=payment, entry_id=entry.id, amount=share))
        remaining -= share
    return amount - remaining


def _check_not_future(entries, as_of):
    future = [e for e in entries if classify(e, as_of) == FUTURE]
    if future:
        labels = ", ".join(e.period_label for e in future)
        raise FuturePeriodNotPayable(
            f"Future periods cannot be paid yet: {labels}",
            entry_ids=[e.id for e in future],
        )


def apply_payment(db: Session, payer_id: str, entry_ids, amount_submitted, metadata: dict,
                  as_of: datetime.date, recorded_by: str = "Admin") -> AllocationResult:
    """Collect a fee payment against `entry_ids`. The amount may not exceed their pending total."""
    amount = to_money(amount_submitted)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    entry_ids = list(entry_ids or [])
    if not entry_ids:
        raise ValidationError("Select at least one ledger entry to pay")
    if len(set(entry_ids)) != len(entry_ids):
        raise ValidationError("The same ledger entry was selected more than once")
    metadata = _validate_metadata(metadata)

    with serialized(db, payer_id):
        entries = (
            db.query(LedgerEntry)
            .filter(LedgerEntry.id.in_(entry_ids))
            .with_for_update()
            .all()
        )
        missing = sorted(set(entry_ids) - {e.id for e in entries})
        if missing:
            raise EntryNotFound(f"Ledger entries not found: {missing}", entry_ids=missing)
        foreign = [e.id for e in entries if e.payer_id != payer_id]
        if foreign:
            raise PayerMismatch(
                f"Ledger entries {foreign} do not belong to payer {payer_id}", entry_ids=foreign
            )
        if any(e.subject_type == SALARY for e in entries):
            raise ValidationError("Salary periods are paid through the salary payment flow")
        _check_not_future(entries, as_of)

        max_payable = sum((e.pending_amount for e in entries), ZERO)
        if amount > max_payable:
            logger.warning(
                "Rejected payment of %s for %s: only %s is payable", amount, payer_id, max_payable
            )
            raise OverAllocation(amount, max_payable)

        payment = _new_payment(db, payer_id, FEE_FLOW, amount, metadata, as_of, recorded_by)
        payment.amount_allocated = _allocate(db, payment, entries, amount, as_of)
        payment.excess_amount = ZERO
        db.flush()
        receipt = payment.receipt_number

    logger.info("Collected %s from %s against %d entr(ies), receipt %s",
                amount, payer_id, len(entries), receipt)
    return AllocationResult(payment=payment, entries=sorted(entries, key=lambda e: (e.due_date, e.id)))


def record_salary_payment(db: Session, teacher_id: str, period_year: int, period_month: int,
                          amount_submitted, metadata: dict, as_of: datetime.date,
                          recorded_by: str = "Admin", payment_type: str = "salary") -> SalaryPaymentResult:
    """Pay a teacher for one month; any amount above that month's pending becomes credit
    for the months after it.
    """
    amount = to_money(amount_submitted)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if payment_type not in SALARY_PAYMENT_TYPES:
        raise ValidationError(f"Unknown salary payment type: {payment_type}")
    if not 1 <= period_month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {period_month}")
    metadata = _validate_metadata(metadata)

    with serialized(db, teacher_id):
        entries = (
            db.query(LedgerEntry)
            .filter(
                LedgerEntry.payer_id == teacher_id,
                LedgerEntry.subject_type == SALARY,
                LedgerEntry.period_year == period_year,
                LedgerEntry.period_month == period_month,
            )
            .order_by(LedgerEntry.due_date.asc(), LedgerEntry.id.asc())
            .with_for_update()
            .all()
        )
        if not entries:
            raise EntryNotFound(
                f"No salary period {period_month:02d}/{period_year} has been generated for {teacher_id}",
                period_year=period_year,
                period_month=period_month,
            )
        _check_not_future(entries, as_of)

        payment = _new_payment(
            db, teacher_id, SALARY_FLOW, amount, metadata, as_of, recorded_by,
            prefix=SALARY_RECEIPT_PREFIX,
        )
        payment.payment_type = payment_type
        allocated = _allocate(db, payment, entries, amount, as_of)
        excess = amount - allocated
        payment.amount_allocated = allocated
        payment.excess_amount = excess
        db.flush()

        applied = []
        if excess > 0:
            credits.post_credit(
                db, teacher_id, excess, source_payment_id=payment.id,
                notes=(f"Overpayment from {period_month:02d}/{period_year} payment of {amount}. "
                       f"Excess: {excess}"),
                applies_from=max(e.period_end for e in entries) + datetime.timedelta(days=1),
            )
            applied = credits.consume_open_credit(db, teacher_id, as_of)

        by_id = {
            e.id: e for e in db.query(LedgerEntry).filter(
                LedgerEntry.id.in_([entry_id for entry_id, _ in applied])
            )
        } if applied else {}
        result = SalaryPaymentResult(
            payment=payment,
            entries=entries,
            excess_amount=excess,
            credit_applied=[(by_id[entry_id], share) for entry_id, share in applied],
            remaining_credit=credits.available_credit(db, teacher_id),
        )

    logger.info(
        "Salary of %s paid to %s for %02d/%s (allocated %s, excess %s)",
        amount, teacher_id, period_month, period_year, allocated, excess,
    )
    return result
