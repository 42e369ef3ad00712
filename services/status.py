"""Status Classifier - maps an entry's amounts and dates to its lifecycle status."""
import calendar
import datetime

from models.ledger import PAID, PARTIALLY_PAID, PENDING, OVERDUE, FUTURE, EXEMPT


def month_end(day: datetime.date) -> datetime.date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def is_future_period(period_start: datetime.date, today: datetime.date) -> bool:
    """True when the period starts after the month `today` falls in."""
    return period_start > month_end(today)


def classify(entry, today: datetime.date) -> str:
    if entry.is_exempt:
        return EXEMPT
    if is_future_period(entry.period_start, today):
        return FUTURE

    settled = entry.paid_amount + entry.credit_applied_amount
    if entry.pending_amount == 0 and entry.assigned_amount > 0:
        return PAID
    if 0 < settled < entry.assigned_amount:
        return PARTIALLY_PAID
    if entry.pending_amount > 0 and today > entry.due_date:
        return OVERDUE
    return PENDING
