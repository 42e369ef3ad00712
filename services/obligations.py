"""
Obligation Generator - materializes a payer's billing periods as ledger entries.

Each period takes its amount from the rate version effective on the period's
first billable day, and each version lays out periods with its own cycle.
A candidate period that overlaps any existing entry is skipped, so
re-running generation over the same range is a no-op and later hikes (even
ones that change the cycle) never reach back into materialized periods.
"""
from decimal import Decimal
import calendar
import datetime
import logging

from sqlalchemy.orm import Session

from config import settings
from models.ledger import FeeAssignment, LedgerEntry, ZERO, EXEMPT
from models.rate_versions import (
    ONE_TIME, MONTHLY, QUARTERLY, YEARLY, PER_TRIP, WEEKLY, BIWEEKLY, SUBJECT_TYPES,
)
from services import credits
from services.errors import ValidationError, NoActiveRate
from services.locks import serialized
from services.money import to_money
from services.rate_versions import get_effective_rate, history
from services.status import classify

logger = logging.getLogger(__name__)


def _month_start(day: datetime.date) -> datetime.date:
    return day.replace(day=1)


def _add_months(day: datetime.date, months: int) -> datetime.date:
    index = day.month - 1 + months
    return datetime.date(day.year + index // 12, index % 12 + 1, 1)


def _last_day(day: datetime.date) -> datetime.date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def iter_periods(cycle: str, lower: datetime.date, upper: datetime.date, anchor: datetime.date):
    """Yield (period_start, period_end, period_month) for every period overlapping [lower, upper].

    `anchor` fixes where one-time, weekly and biweekly periods start.
    """
    if cycle == MONTHLY:
        start = _month_start(lower)
        while start <= upper:
            yield start, _last_day(start), start.month
            start = _add_months(start, 1)

    elif cycle == QUARTERLY:
        start = datetime.date(lower.year, (lower.month - 1) // 3 * 3 + 1, 1)
        while start <= upper:
            yield start, _add_months(start, 3) - datetime.timedelta(days=1), start.month
            start = _add_months(start, 3)

    elif cycle == YEARLY:
        for year in range(lower.year, upper.year + 1):
            yield datetime.date(year, 1, 1), datetime.date(year, 12, 31), 1

    elif cycle == ONE_TIME:
        start = _month_start(anchor)
        if start <= upper:
            yield start, _last_day(start), None

    elif cycle in (WEEKLY, BIWEEKLY):
        length = datetime.timedelta(days=7 if cycle == WEEKLY else 14)
        start = anchor
        if lower > anchor:
            start = anchor + length * ((lower - anchor) // length)
        while start <= upper:
            yield start, start + length - datetime.timedelta(days=1), start.month
            start += length

    elif cycle == PER_TRIP:
        return

    else:
        raise ValidationError(f"Unknown billing cycle: {cycle}")


def due_date_for(period_start: datetime.date, period_end: datetime.date, due_day: int) -> datetime.date:
    due = period_start + datetime.timedelta(days=due_day - 1)
    return min(due, period_end)


def get_assignment(db: Session, payer_id: str, subject_id: str):
    return (
        db.query(FeeAssignment)
        .filter(FeeAssignment.payer_id == payer_id, FeeAssignment.subject_id == subject_id)
        .first()
    )


def upsert_assignment(db: Session, payer_id: str, subject_id: str, subject_type: str,
                      start_date: datetime.date, end_date: datetime.date = None,
                      due_day: int = None, discount_amount=ZERO, is_exempt: bool = False,
                      remarks: str = None) -> FeeAssignment:
    """Create or update a payer's billing configuration for one subject.

    Only periods generated afterwards see the change.
    """
    if subject_type not in SUBJECT_TYPES:
        raise ValidationError(f"Unknown subject type: {subject_type}")
    if end_date is not None and end_date < start_date:
        raise ValidationError("Assignment end date is before its start date")
    if due_day is not None and not 1 <= due_day <= 31:
        raise ValidationError(f"Due day must be between 1 and 31, got {due_day}")
    discount_amount = to_money(discount_amount or 0)

    with serialized(db, payer_id):
        assignment = get_assignment(db, payer_id, subject_id)
        if assignment is None:
            assignment = FeeAssignment(payer_id=payer_id, subject_id=subject_id)
            db.add(assignment)
        assignment.subject_type = subject_type
        assignment.start_date = start_date
        assignment.end_date = end_date
        assignment.due_day = due_day
        assignment.discount_amount = discount_amount
        assignment.is_exempt = is_exempt
        assignment.remarks = remarks

    logger.info(
        "Assignment saved for %s on %s (discount=%s, exempt=%s)",
        payer_id, subject_id, discount_amount, is_exempt,
    )
    return assignment


def _build_entry(payer_id, subject_id, subject_type, period, due_day, rate_date, assignment, db):
    period_start, period_end, period_month = period
    rate = get_effective_rate(db, subject_id, rate_date)

    exempt = bool(assignment is not None and assignment.is_exempt)
    if exempt:
        assigned = ZERO
    else:
        discount = assignment.discount_amount if assignment is not None else ZERO
        assigned = max(ZERO, Decimal(rate.amount) - Decimal(discount or 0))

    entry = LedgerEntry(
        payer_id=payer_id,
        subject_id=subject_id,
        subject_type=subject_type,
        period_year=period_start.year,
        period_month=period_month,
        period_start=period_start,
        period_end=period_end,
        due_date=due_date_for(period_start, period_end, due_day),
        assigned_amount=assigned,
        paid_amount=ZERO,
        credit_applied_amount=ZERO,
        is_exempt=exempt,
        rate_version_id=rate.id,
    )
    entry.recompute_pending()
    return entry


def generate_periods(db: Session, payer_id: str, subject_id: str, subject_type: str,
                     range_start: datetime.date, range_end: datetime.date,
                     as_of: datetime.date):
    """Create the entries `payer_id` owes for `subject_id` between the two dates.

    Returns only the entries created by this call. Fails atomically with
    NoActiveRate if any period to create has no effective rate.
    """
    if range_start > range_end:
        raise ValidationError("Range start is after range end")
    if subject_type not in SUBJECT_TYPES:
        raise ValidationError(f"Unknown subject type: {subject_type}")

    created = []
    with serialized(db, payer_id):
        versions = history(db, subject_id)
        if not versions:
            raise NoActiveRate(f"{subject_id} has no rate history", subject_id=subject_id)
        if versions[-1].subject_type != subject_type:
            raise ValidationError(
                f"{subject_id} is a {versions[-1].subject_type} rate, not {subject_type}",
                subject_id=subject_id,
            )

        assignment = get_assignment(db, payer_id, subject_id)
        lower, upper = range_start, range_end
        if assignment is not None:
            lower = max(lower, assignment.start_date)
            if assignment.end_date is not None:
                upper = min(upper, assignment.end_date)
            due_day = assignment.due_day or settings.DEFAULT_DUE_DAY
        else:
            due_day = settings.DEFAULT_DUE_DAY
        if lower > upper:
            return created

        # Intervals already billed; no new period may overlap one of them
        taken = [
            (row.period_start, row.period_end)
            for row in db.query(LedgerEntry.period_start, LedgerEntry.period_end).filter(
                LedgerEntry.payer_id == payer_id, LedgerEntry.subject_id == subject_id
            )
        ]

        anchor = None
        for index, version in enumerate(versions):
            # Each version bills its own stretch with its own cycle
            if index == 0:
                anchor = assignment.start_date if assignment is not None else (
                    range_start if version.cycle == ONE_TIME else version.effective_from_date
                )
            elif version.cycle != versions[index - 1].cycle:
                anchor = version.effective_from_date
            seg_lower = lower if index == 0 else max(lower, version.effective_from_date)
            seg_upper = upper if version.effective_to_date is None else min(upper, version.effective_to_date)
            if seg_lower > seg_upper:
                continue
            if version.cycle == PER_TRIP:
                logger.info("Skipping per-trip stretch of %s from %s", subject_id, seg_lower)
                continue
            if version.cycle == ONE_TIME and taken:
                continue

            for period in iter_periods(version.cycle, seg_lower, seg_upper, anchor):
                period_start, period_end = period[0], period[1]
                if any(start <= period_end and period_start <= end for start, end in taken):
                    continue
                # first billable day of the period
                rate_date = period_start
                if assignment is not None:
                    rate_date = max(rate_date, assignment.start_date)
                if index > 0:
                    rate_date = max(rate_date, version.effective_from_date)
                entry = _build_entry(
                    payer_id, subject_id, subject_type, period, due_day, rate_date, assignment, db
                )
                entry.status = EXEMPT if entry.is_exempt else classify(entry, as_of)
                db.add(entry)
                created.append(entry)
                taken.append((period_start, period_end))

        if created:
            db.flush()
            credits.consume_open_credit(db, payer_id, as_of)

    if created:
        logger.info(
            "Generated %d period(s) of %s for %s between %s and %s",
            len(created), subject_id, payer_id, range_start, range_end,
        )
    return created
