"""
Late-fee fines for overdue fee entries.

Fines are a read-time projection: they are computed for an `as_of` date and
never written into the ledger, so `pending = assigned - paid - credit_applied`
still holds for every entry. Salary entries never attract a fine.
"""
from decimal import Decimal
import datetime
import logging

from sqlalchemy.orm import Session

from models.fee_models import FineRule, FINE_FIXED, FINE_PERCENTAGE, FINE_PER_DAY, FINE_TYPES
from models.ledger import ZERO
from models.rate_versions import SALARY
from services.errors import ValidationError
from services.money import to_money

logger = logging.getLogger(__name__)


def create_fine_rule(db: Session, name: str, fine_type: str, effective_from: datetime.date,
                     days_after_due: int = 1, fine_amount=None, fine_percentage=None,
                     max_fine_amount=None, effective_to: datetime.date = None) -> FineRule:
    if fine_type not in FINE_TYPES:
        raise ValidationError(f"Unknown fine type: {fine_type}")
    if days_after_due < 1:
        raise ValidationError("A fine starts at least one day after the due date")
    if fine_type == FINE_PERCENTAGE and fine_percentage is None:
        raise ValidationError("Percentage fines need fine_percentage")
    if fine_type in (FINE_FIXED, FINE_PER_DAY) and fine_amount is None:
        raise ValidationError(f"{fine_type} fines need fine_amount")
    if effective_to is not None and effective_to < effective_from:
        raise ValidationError("Fine rule ends before it starts")

    rule = FineRule(
        name=name,
        fine_type=fine_type,
        days_after_due=days_after_due,
        fine_amount=None if fine_amount is None else to_money(fine_amount),
        fine_percentage=None if fine_percentage is None else to_money(fine_percentage),
        max_fine_amount=None if max_fine_amount is None else to_money(max_fine_amount),
        effective_from=effective_from,
        effective_to=effective_to,
        is_active=True,
    )
    db.add(rule)
    db.commit()
    logger.info("Fine rule %r created: %s after %d day(s)", name, fine_type, days_after_due)
    return rule


def active_fine_rules(db: Session, as_of: datetime.date):
    """Rules in force on `as_of`, strictest threshold first."""
    return (
        db.query(FineRule)
        .filter(FineRule.is_active.is_(True), FineRule.effective_from <= as_of)
        .filter((FineRule.effective_to.is_(None)) | (FineRule.effective_to >= as_of))
        .order_by(FineRule.days_after_due.desc(), FineRule.id.desc())
        .all()
    )


def fine_for(entry, rules, as_of: datetime.date) -> Decimal:
    """Fine owed on `entry` at `as_of` under the rule with the highest threshold reached."""
    if entry.is_exempt or entry.subject_type == SALARY or entry.pending_amount <= 0:
        return ZERO
    days_overdue = (as_of - entry.due_date).days
    if days_overdue <= 0:
        return ZERO

    rule = next((r for r in rules if r.days_after_due <= days_overdue), None)
    if rule is None:
        return ZERO

    if rule.fine_type == FINE_FIXED:
        fine = Decimal(rule.fine_amount or 0)
    elif rule.fine_type == FINE_PERCENTAGE:
        fine = Decimal(entry.pending_amount) * Decimal(rule.fine_percentage or 0) / 100
    else:
        fine = Decimal(rule.fine_amount or 0) * days_overdue

    if rule.max_fine_amount is not None:
        fine = min(fine, Decimal(rule.max_fine_amount))
    return to_money(max(ZERO, fine))
