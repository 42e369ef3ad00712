import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from services.status import classify, is_future_period


def make_entry(assigned="1000", paid="0", credit="0", start=datetime.date(2024, 3, 1),
               due=datetime.date(2024, 3, 15), exempt=False):
    assigned, paid, credit = Decimal(assigned), Decimal(paid), Decimal(credit)
    return SimpleNamespace(
        assigned_amount=assigned,
        paid_amount=paid,
        credit_applied_amount=credit,
        pending_amount=assigned - paid - credit,
        period_start=start,
        due_date=due,
        is_exempt=exempt,
    )


@pytest.mark.parametrize("today, expected", [
    (datetime.date(2024, 3, 10), "pending"),
    (datetime.date(2024, 3, 15), "pending"),
    (datetime.date(2024, 3, 16), "overdue"),
    (datetime.date(2024, 2, 29), "future"),
])
def test_unpaid_entry_by_date(today, expected):
    assert classify(make_entry(), today) == expected


def test_paid_beats_overdue():
    entry = make_entry(paid="1000")
    assert classify(entry, datetime.date(2024, 6, 1)) == "paid"


def test_credit_counts_towards_settlement():
    assert classify(make_entry(paid="400", credit="600"), datetime.date(2024, 3, 5)) == "paid"
    assert classify(make_entry(credit="300"), datetime.date(2024, 3, 5)) == "partially-paid"


def test_partially_paid_after_due_date_stays_partially_paid():
    assert classify(make_entry(paid="1"), datetime.date(2024, 4, 1)) == "partially-paid"


def test_exempt_entry():
    entry = make_entry(assigned="0", exempt=True)
    assert classify(entry, datetime.date(2024, 5, 1)) == "exempt"


def test_zero_amount_entry_is_not_paid():
    assert classify(make_entry(assigned="0"), datetime.date(2024, 3, 1)) == "pending"


def test_future_is_relative_to_the_current_month():
    assert not is_future_period(datetime.date(2024, 3, 1), datetime.date(2024, 3, 31))
    assert is_future_period(datetime.date(2024, 4, 1), datetime.date(2024, 3, 31))
