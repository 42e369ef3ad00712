import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from models.ledger import LedgerEntry
from services import fines, reports
from services.errors import ValidationError
from tests.conftest import generate, money

MAR_20 = datetime.date(2024, 3, 20)


@pytest.fixture
def fine_rules(db):
    fines.create_fine_rule(db, "Late fee", "fixed", datetime.date(2024, 1, 1), days_after_due=1,
                           fine_amount=50)
    fines.create_fine_rule(db, "Long overdue", "per_day", datetime.date(2024, 1, 1), days_after_due=30,
                           fine_amount=5, max_fine_amount=300)


def overdue_entry(**overrides):
    values = dict(is_exempt=False, subject_type="class-fee", pending_amount=Decimal("800.00"),
                  due_date=datetime.date(2024, 3, 10))
    values.update(overrides)
    return SimpleNamespace(**values)


def test_fines_follow_the_highest_threshold_reached(db, monthly_fee, fine_rules):
    generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 4, 30), MAR_20)

    ledger = reports.monthly_ledger(db, "S1", MAR_20)

    # Jan is 65 days late (capped), Feb 34 days, Mar 5 days, Apr not started
    assert [money(p["total_fine"]) for p in ledger] == [300, 170, 50, 0]
    assert [money(p["total_pending"]) for p in ledger] == [1000] * 4


def test_fines_are_projected_not_stored(db, monthly_fee, fine_rules):
    generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 3, 31), MAR_20)

    summary = reports.unpaid_summary(db, MAR_20)

    assert money(summary["total_fine"]) == 520
    assert money(summary["payers"][0]["total_fine"]) == 520
    assert money(summary["total_pending"]) == 3000
    for entry in db.query(LedgerEntry):
        assert entry.pending_amount == entry.assigned_amount - entry.paid_amount - entry.credit_applied_amount


def test_percentage_fine_is_capped():
    rule = SimpleNamespace(days_after_due=1, fine_type="percentage", fine_amount=None,
                           fine_percentage=Decimal("10"), max_fine_amount=Decimal("60"))

    assert fines.fine_for(overdue_entry(), [rule], MAR_20) == Decimal("60.00")
    assert fines.fine_for(overdue_entry(pending_amount=Decimal("300")), [rule], MAR_20) == Decimal("30.00")


@pytest.mark.parametrize("entry", [
    overdue_entry(is_exempt=True),
    overdue_entry(subject_type="salary"),
    overdue_entry(pending_amount=Decimal("0")),
    overdue_entry(due_date=MAR_20),
])
def test_no_fine_without_an_overdue_fee(entry):
    rule = SimpleNamespace(days_after_due=1, fine_type="fixed", fine_amount=Decimal("50"),
                           fine_percentage=None, max_fine_amount=None)
    assert fines.fine_for(entry, [rule], MAR_20) == 0


def test_expired_rules_are_ignored(db):
    fines.create_fine_rule(db, "Old rule", "fixed", datetime.date(2023, 1, 1), fine_amount=25,
                           effective_to=datetime.date(2023, 12, 31))
    fines.create_fine_rule(db, "Current rule", "fixed", datetime.date(2024, 1, 1), fine_amount=40)

    assert [r.name for r in fines.active_fine_rules(db, MAR_20)] == ["Current rule"]


def test_fine_rule_needs_its_amount(db):
    with pytest.raises(ValidationError):
        fines.create_fine_rule(db, "Broken", "per_day", datetime.date(2024, 1, 1))
    with pytest.raises(ValidationError):
        fines.create_fine_rule(db, "Broken", "percentage", datetime.date(2024, 1, 1), fine_amount=10)
