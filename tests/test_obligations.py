import datetime

import pytest

from models.ledger import LedgerEntry
from services import obligations, rate_versions, reports
from services.errors import NoActiveRate, ValidationError
from tests.conftest import generate, money

JAN_20 = datetime.date(2024, 1, 20)


def amounts(entries):
    return [money(e.assigned_amount) for e in entries]


def test_hike_leaves_generated_periods_alone(db, monthly_fee):
    created = generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 3, 31), JAN_20)
    assert [(e.period_year, e.period_month) for e in created] == [(2024, 1), (2024, 2), (2024, 3)]
    assert amounts(created) == [1000, 1000, 1000]

    rate_versions.hike(db, monthly_fee, 1200, datetime.date(2024, 3, 1))
    april = generate(db, "S1", monthly_fee, datetime.date(2024, 4, 1), datetime.date(2024, 4, 30), JAN_20)

    assert amounts(april) == [1200]
    entries = db.query(LedgerEntry).order_by(LedgerEntry.period_start).all()
    assert amounts(entries) == [1000, 1000, 1000, 1200]


def test_regeneration_is_a_noop(db, monthly_fee):
    generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 3, 31), JAN_20)
    rate_versions.hike(db, monthly_fee, 1500, datetime.date(2024, 2, 1))

    again = generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 3, 31), JAN_20)

    assert again == []
    entries = db.query(LedgerEntry).filter_by(payer_id="S1").all()
    assert len(entries) == 3
    assert amounts(entries) == [1000, 1000, 1000]


def test_overlapping_range_only_adds_missing_periods(db, monthly_fee):
    generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 2, 29), JAN_20)
    created = generate(db, "S1", monthly_fee, datetime.date(2024, 2, 10), datetime.date(2024, 4, 5), JAN_20)
    assert [e.period_month for e in created] == [3, 4]


def test_due_date_and_initial_status(db, monthly_fee):
    jan, feb = generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 2, 29), JAN_20)
    assert jan.due_date == datetime.date(2024, 1, 15)
    assert jan.status == "overdue"
    assert feb.status == "future"
    assert money(jan.pending_amount) == 1000


def test_due_day_is_clamped_to_month_end(db, monthly_fee):
    obligations.upsert_assignment(db, "S1", monthly_fee, "class-fee", datetime.date(2024, 1, 1), due_day=31)
    entries = generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 4, 30), JAN_20)
    assert [e.due_date for e in entries] == [
        datetime.date(2024, 1, 31), datetime.date(2024, 2, 29),
        datetime.date(2024, 3, 31), datetime.date(2024, 4, 30),
    ]


def test_discount_is_applied_at_generation(db, monthly_fee):
    obligations.upsert_assignment(db, "S1", monthly_fee, "class-fee", datetime.date(2024, 1, 1),
                                  discount_amount=250)
    obligations.upsert_assignment(db, "S2", monthly_fee, "class-fee", datetime.date(2024, 1, 1),
                                  discount_amount=5000)

    s1 = generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 1, 31), JAN_20)
    s2 = generate(db, "S2", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 1, 31), JAN_20)

    assert amounts(s1) == [750]
    assert amounts(s2) == [0]
    assert money(s2[0].pending_amount) == 0


def test_exempt_payer_gets_zero_exempt_entries(db, monthly_fee):
    obligations.upsert_assignment(db, "S1", monthly_fee, "class-fee", datetime.date(2024, 1, 1), is_exempt=True)
    entries = generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 2, 29), JAN_20)
    assert amounts(entries) == [0, 0]
    assert {e.status for e in entries} == {"exempt"}


def test_assignment_window_limits_periods(db, monthly_fee):
    obligations.upsert_assignment(db, "S1", monthly_fee, "class-fee", datetime.date(2024, 2, 10),
                                  end_date=datetime.date(2024, 4, 30))
    entries = generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 12, 31), JAN_20)
    assert [e.period_month for e in entries] == [2, 3, 4]


def test_quarterly_and_yearly_cycles(db):
    rate_versions.create_rate(db, "custom:lab", "custom-fee", 900, "quarterly", datetime.date(2024, 1, 1))
    rate_versions.create_rate(db, "custom:annual", "custom-fee", 3000, "yearly", datetime.date(2024, 1, 1))

    quarters = generate(db, "S1", "custom:lab", datetime.date(2024, 2, 1), datetime.date(2024, 12, 31),
                        JAN_20, subject_type="custom-fee")
    years = generate(db, "S1", "custom:annual", datetime.date(2024, 1, 1), datetime.date(2025, 6, 30),
                     JAN_20, subject_type="custom-fee")

    assert [(e.period_start, e.period_end) for e in quarters] == [
        (datetime.date(2024, 1, 1), datetime.date(2024, 3, 31)),
        (datetime.date(2024, 4, 1), datetime.date(2024, 6, 30)),
        (datetime.date(2024, 7, 1), datetime.date(2024, 9, 30)),
        (datetime.date(2024, 10, 1), datetime.date(2024, 12, 31)),
    ]
    assert amounts(quarters) == [900] * 4
    assert [e.period_year for e in years] == [2024, 2025]


def test_one_time_fee_is_generated_once(db):
    rate_versions.create_rate(db, "custom:admission", "custom-fee", 5000, "one-time", datetime.date(2023, 1, 1))
    obligations.upsert_assignment(db, "S1", "custom:admission", "custom-fee", datetime.date(2024, 1, 8))

    first = generate(db, "S1", "custom:admission", datetime.date(2024, 1, 1), datetime.date(2024, 12, 31),
                     JAN_20, subject_type="custom-fee")
    second = generate(db, "S1", "custom:admission", datetime.date(2024, 1, 1), datetime.date(2025, 12, 31),
                      JAN_20, subject_type="custom-fee")

    assert len(first) == 1
    assert first[0].period_month is None
    assert first[0].period_label == "2024 (one-time)"
    assert second == []


def test_weekly_periods_follow_assignment_start(db):
    rate_versions.create_rate(db, "salary:T9", "salary", 700, "weekly", datetime.date(2024, 1, 1))
    obligations.upsert_assignment(db, "T9", "salary:T9", "salary", datetime.date(2024, 1, 3), due_day=7)

    entries = generate(db, "T9", "salary:T9", datetime.date(2024, 1, 1), datetime.date(2024, 1, 20),
                       JAN_20, subject_type="salary")

    assert [e.period_start for e in entries] == [
        datetime.date(2024, 1, 3), datetime.date(2024, 1, 10), datetime.date(2024, 1, 17),
    ]
    assert entries[0].due_date == datetime.date(2024, 1, 9)


def test_per_trip_subjects_are_not_generated(db):
    rate_versions.create_rate(db, "route:trip", "transport-fee", 50, "per-trip", datetime.date(2024, 1, 1))
    assert generate(db, "S1", "route:trip", datetime.date(2024, 1, 1), datetime.date(2024, 3, 31),
                    JAN_20, subject_type="transport-fee") == []


def test_missing_rate_fails_without_partial_writes(db):
    rate_versions.create_rate(db, "route:new", "transport-fee", 600, "monthly", datetime.date(2024, 3, 1))

    with pytest.raises(NoActiveRate):
        generate(db, "S1", "route:new", datetime.date(2024, 1, 1), datetime.date(2024, 4, 30),
                 JAN_20, subject_type="transport-fee")

    assert db.query(LedgerEntry).count() == 0


def test_subject_type_must_match_rate(db, monthly_fee):
    with pytest.raises(ValidationError):
        generate(db, "S1", monthly_fee, datetime.date(2024, 1, 1), datetime.date(2024, 1, 31),
                 JAN_20, subject_type="transport-fee")


def test_inverted_range_is_rejected(db, monthly_fee):
    with pytest.raises(ValidationError):
        generate(db, "S1", monthly_fee, datetime.date(2024, 3, 1), datetime.date(2024, 1, 1), JAN_20)


def test_cycle_change_does_not_rebill_earlier_periods(db):
    rate_versions.create_rate(db, "salary:T5", "salary", 5000, "monthly", datetime.date(2024, 1, 1))
    obligations.upsert_assignment(db, "T5", "salary:T5", "salary", datetime.date(2024, 1, 1))
    generate(db, "T5", "salary:T5", datetime.date(2024, 1, 1), datetime.date(2024, 3, 31),
             JAN_20, subject_type="salary")

    rate_versions.hike(db, "salary:T5", 1200, datetime.date(2024, 4, 1), cycle="weekly")

    again = generate(db, "T5", "salary:T5", datetime.date(2024, 1, 1), datetime.date(2024, 3, 31),
                     JAN_20, subject_type="salary")
    assert again == []
    owed = sum((e.assigned_amount for e in db.query(LedgerEntry).filter_by(payer_id="T5")), 0)
    assert money(owed) == 15000

    april = generate(db, "T5", "salary:T5", datetime.date(2024, 1, 1), datetime.date(2024, 4, 30),
                     JAN_20, subject_type="salary")
    assert [e.period_start.day for e in april] == [1, 8, 15, 22, 29]
    assert amounts(april) == [1200] * 5


def test_moved_weekly_anchor_never_overlaps_existing_weeks(db):
    rate_versions.create_rate(db, "salary:T6", "salary", 700, "weekly", datetime.date(2024, 1, 1))
    obligations.upsert_assignment(db, "T6", "salary:T6", "salary", datetime.date(2024, 1, 1))
    generate(db, "T6", "salary:T6", datetime.date(2024, 1, 1), datetime.date(2024, 1, 14),
             JAN_20, subject_type="salary")

    obligations.upsert_assignment(db, "T6", "salary:T6", "salary", datetime.date(2024, 1, 3))
    generate(db, "T6", "salary:T6", datetime.date(2024, 1, 1), datetime.date(2024, 1, 31),
             JAN_20, subject_type="salary")

    spans = [(e.period_start, e.period_end)
             for e in db.query(LedgerEntry).filter_by(payer_id="T6").order_by(LedgerEntry.period_start)]
    assert spans[:2] == [
        (datetime.date(2024, 1, 1), datetime.date(2024, 1, 7)),
        (datetime.date(2024, 1, 8), datetime.date(2024, 1, 14)),
    ]
    for (_, end), (start, _) in zip(spans, spans[1:]):
        assert start > end


def test_stored_status_is_a_snapshot_and_reads_reclassify(db, monthly_fee):
    generate(db, "S1", monthly_fee, datetime.date(2024, 2, 1), datetime.date(2024, 2, 29), JAN_20)
    feb = db.query(LedgerEntry).one()
    assert feb.status == "future"

    ledger = reports.monthly_ledger(db, "S1", datetime.date(2024, 3, 20))

    assert ledger[0]["entries"][0]["status"] == "overdue"
    db.refresh(feb)
    assert feb.status == "future"
