"""
Credit Ledger - excess payments held for a payer and consumed against
their oldest open entries.

Consumption only moves amount out of `CreditBalance.remaining_amount` and
into `LedgerEntry.credit_applied_amount`, so running it again with nothing
new to consume changes nothing.
"""
import datetime
import logging

from sqlalchemy.orm import Session

from models.ledger import CreditBalance, CreditApplication, LedgerEntry, ZERO
from services.errors import ValidationError
from services.locks import serialized
from services.money import to_money
from services.status import classify

logger = logging.getLogger(__name__)


def post_credit(db: Session, payer_id: str, amount, source_payment_id: int = None,
                notes: str = None, applies_from: datetime.date = None) -> CreditBalance:
    """Record new credit. Runs inside the caller's payer scope; does not commit.

    `applies_from` keeps the credit away from periods that start earlier.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Credit amount must be greater than zero")
    credit = CreditBalance(
        payer_id=payer_id,
        amount=amount,
        remaining_amount=amount,
        created_from_payment_id=source_payment_id,
        applies_from=applies_from,
        notes=notes,
    )
    db.add(credit)
    db.flush()
    logger.info("Posted credit %s of %s for %s", credit.id, amount, payer_id)
    return credit


def open_credits(db: Session, payer_id: str, for_update: bool = False):
    query = (
        db.query(CreditBalance)
        .filter(CreditBalance.payer_id == payer_id, CreditBalance.remaining_amount > 0)
        .order_by(CreditBalance.created_at.asc(), CreditBalance.id.asc())
    )
    if for_update:
        query = query.with_for_update()
    return query.all()


def consume_open_credit(db: Session, payer_id: str, as_of: datetime.date):
    """Spread the payer's open credit over their unpaid entries, oldest due first.

    A credit with `applies_from` only reaches entries whose period starts on
    or after that date. Runs inside the caller's payer scope. Returns
    [(entry_id, amount_applied)].
    """
    credits = open_credits(db, payer_id, for_update=True)
    if not credits:
        return []

    entries = (
        db.query(LedgerEntry)
        .filter(
            LedgerEntry.payer_id == payer_id,
            LedgerEntry.pending_amount > 0,
            LedgerEntry.is_exempt.is_(False),
        )
        .order_by(LedgerEntry.due_date.asc(), LedgerEntry.id.asc())
        .with_for_update()
        .all()
    )

    applied = []
    touched = {}
    for credit in credits:
        for entry in entries:
            if credit.remaining_amount <= 0:
                break
            if entry.pending_amount <= 0:
                continue
            if credit.applies_from is not None and entry.period_start < credit.applies_from:
                continue
            amount = min(credit.remaining_amount, entry.pending_amount)
            credit.remaining_amount -= amount
            entry.credit_applied_amount += amount
            entry.recompute_pending()
            db.add(CreditApplication(credit_id=credit.id, entry_id=entry.id, amount=amount))
            applied.append((entry.id, amount))
            touched[entry.id] = entry

    for entry in touched.values():
        entry.status = classify(entry, as_of)

    db.flush()
    if applied:
        logger.info(
            "Applied %s of credit to %d entr(ies) for %s",
            sum((amount for _, amount in applied), ZERO), len(applied), payer_id,
        )
    return applied


def apply_credit(db: Session, payer_id: str, as_of: datetime.date):
    """Consume any open credit for `payer_id`; safe to call repeatedly."""
    with serialized(db, payer_id):
        applied = consume_open_credit(db, payer_id, as_of)
    return applied


def available_credit(db: Session, payer_id: str):
    total = sum((c.remaining_amount for c in open_credits(db, payer_id)), ZERO)
    return to_money(total)


def credit_summary(db: Session, payer_id: str) -> dict:
    credits = (
        db.query(CreditBalance)
        .filter(CreditBalance.payer_id == payer_id)
        .order_by(CreditBalance.created_at.desc(), CreditBalance.id.desc())
        .all()
    )
    return {
        "payer_id": payer_id,
        "available_credit": available_credit(db, payer_id),
        "credits": [
            {
                "id": c.id,
                "amount": c.amount,
                "remaining_amount": c.remaining_amount,
                "created_from_payment_id": c.created_from_payment_id,
                "applies_from": c.applies_from,
                "notes": c.notes,
                "created_at": c.created_at,
                "applications": [
                    {
                        "entry_id": a.entry_id,
                        "period_label": a.entry.period_label,
                        "amount": a.amount,
                        "applied_at": a.applied_at,
                    }
                    for a in c.applications
                ],
            }
            for c in credits
        ],
    }
