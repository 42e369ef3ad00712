"""
Read projections over the ledger. Nothing here writes; statuses are
recomputed for `as_of` instead of trusting the stored value.
"""
from collections import OrderedDict
import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models.ledger import LedgerEntry, PaymentRecord, PaymentAllocation, ZERO, OVERDUE, FUTURE
from services.errors import EntryNotFound
from services.fines import active_fine_rules, fine_for
from services.status import classify


def entry_snapshot(entry: LedgerEntry, as_of: datetime.date, fine_rules=()) -> dict:
    """Entry as seen on `as_of`; `fine_amount` is projected from `fine_rules`, never stored."""
    return {
        "id": entry.id,
        "payer_id": entry.payer_id,
        "subject_id": entry.subject_id,
        "subject_type": entry.subject_type,
        "period_year": entry.period_year,
        "period_month": entry.period_month,
        "period_label": entry.period_label,
        "period_start": entry.period_start,
        "period_end": entry.period_end,
        "due_date": entry.due_date,
        "assigned_amount": entry.assigned_amount,
        "paid_amount": entry.paid_amount,
        "credit_applied_amount": entry.credit_applied_amount,
        "pending_amount": entry.pending_amount,
        "status": classify(entry, as_of),
        "rate_version_id": entry.rate_version_id,
        "fine_amount": fine_for(entry, fine_rules, as_of),
    }


def monthly_ledger(db: Session, payer_id: str, as_of: datetime.date):
    """The payer's entries grouped by period, oldest period first."""
    rules = active_fine_rules(db, as_of)
    entries = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.payer_id == payer_id)
        .order_by(LedgerEntry.period_start.asc(), LedgerEntry.subject_type.asc(), LedgerEntry.id.asc())
        .all()
    )

    periods = OrderedDict()
    for entry in entries:
        key = (entry.period_year, entry.period_month)
        group = periods.get(key)
        if group is None:
            group = periods[key] = {
                "period_year": entry.period_year,
                "period_month": entry.period_month,
                "period_label": entry.period_label,
                "entries": [],
                "total_assigned": ZERO,
                "total_paid": ZERO,
                "total_credit_applied": ZERO,
                "total_pending": ZERO,
                "total_fine": ZERO,
            }
        snapshot = entry_snapshot(entry, as_of, rules)
        group["entries"].append(snapshot)
        group["total_assigned"] += entry.assigned_amount
        group["total_paid"] += entry.paid_amount
        group["total_credit_applied"] += entry.credit_applied_amount
        group["total_pending"] += entry.pending_amount
        group["total_fine"] += snapshot["fine_amount"]

    return list(periods.values())


def _period_ref(entry: LedgerEntry, as_of: datetime.date) -> dict:
    return {
        "entry_id": entry.id,
        "period_label": entry.period_label,
        "period_start": entry.period_start,
        "due_date": entry.due_date,
        "pending_amount": entry.pending_amount,
        "days_since_period_start": (as_of - entry.period_start).days,
    }


def unpaid_summary(db: Session, as_of: datetime.date, subject_type: str = None,
                   payer_id: str = None) -> dict:
    """Pending totals per payer with their oldest and latest unpaid periods.

    Periods that have not started by the end of `as_of`'s month are left out.
    """
    rules = active_fine_rules(db, as_of)
    query = db.query(LedgerEntry).filter(LedgerEntry.pending_amount > 0)
    if subject_type:
        query = query.filter(LedgerEntry.subject_type == subject_type)
    if payer_id:
        query = query.filter(LedgerEntry.payer_id == payer_id)
    entries = query.order_by(
        LedgerEntry.payer_id.asc(), LedgerEntry.due_date.asc(), LedgerEntry.id.asc()
    ).all()

    payers = OrderedDict()
    for entry in entries:
        status = classify(entry, as_of)
        if status == FUTURE:
            continue
        row = payers.get(entry.payer_id)
        if row is None:
            row = payers[entry.payer_id] = {
                "payer_id": entry.payer_id,
                "total_pending": ZERO,
                "total_fine": ZERO,
                "unpaid_count": 0,
                "overdue_count": 0,
                "oldest_unpaid": _period_ref(entry, as_of),
                "latest_unpaid": None,
            }
        row["total_pending"] += entry.pending_amount
        row["total_fine"] += fine_for(entry, rules, as_of)
        row["unpaid_count"] += 1
        if status == OVERDUE:
            row["overdue_count"] += 1
        row["latest_unpaid"] = _period_ref(entry, as_of)

    rows = sorted(payers.values(), key=lambda r: r["total_pending"], reverse=True)
    return {
        "as_of": as_of,
        "total_payers": len(rows),
        "total_pending": sum((r["total_pending"] for r in rows), ZERO),
        "total_fine": sum((r["total_fine"] for r in rows), ZERO),
        "total_unpaid_entries": sum(r["unpaid_count"] for r in rows),
        "payers": rows,
    }


def collection_summary(db: Session, on_date: datetime.date) -> dict:
    """Money received on a day, split by flow."""
    rows = (
        db.query(PaymentRecord.flow, func.count(PaymentRecord.id), func.sum(PaymentRecord.amount_submitted))
        .filter(PaymentRecord.payment_date == on_date)
        .group_by(PaymentRecord.flow)
        .all()
    )
    by_flow = {flow: {"payments": count, "amount": total or ZERO} for flow, count, total in rows}
    return {
        "date": on_date,
        "by_flow": by_flow,
        "total": sum((v["amount"] for v in by_flow.values()), ZERO),
    }


def payment_history(db: Session, payer_id: str, payment_type: str = None):
    query = db.query(PaymentRecord).filter(PaymentRecord.payer_id == payer_id)
    if payment_type:
        query = query.filter(PaymentRecord.payment_type == payment_type)
    return query.order_by(PaymentRecord.id.desc()).all()


def get_receipt(db: Session, receipt_number: str, as_of: datetime.date) -> dict:
    """Payment plus the entries it settled, for the receipt renderer."""
    payment = (
        db.query(PaymentRecord)
        .options(joinedload(PaymentRecord.allocations).joinedload(PaymentAllocation.entry))
        .filter(PaymentRecord.receipt_number == receipt_number)
        .first()
    )
    if payment is None:
        raise EntryNotFound(f"Receipt {receipt_number} not found", receipt_number=receipt_number)

    return {
        "payment": payment,
        "items": [
            {
                "entry_id": a.entry_id,
                "subject_id": a.entry.subject_id,
                "subject_type": a.entry.subject_type,
                "period_label": a.entry.period_label,
                "amount": a.amount,
                "pending_after": a.entry.pending_amount,
                "status": classify(a.entry, as_of),
            }
            for a in payment.allocations
        ],
    }
