from decimal import Decimal

import pytest

from services.errors import ValidationError
from services.money import to_money


@pytest.mark.parametrize("value, expected", [
    (1000, Decimal("1000.00")),
    ("12.345", Decimal("12.35")),
    (0.1, Decimal("0.10")),
])
def test_amounts_are_rounded_to_paise(value, expected):
    assert to_money(value) == expected


@pytest.mark.parametrize("value", ["NaN", "sNaN", "Infinity", "-Infinity", "abc", None])
def test_non_numeric_amounts_are_rejected(value):
    with pytest.raises(ValidationError):
        to_money(value)


def test_negative_amounts_need_opt_in():
    with pytest.raises(ValidationError):
        to_money("-5")
    assert to_money("-5", allow_negative=True) == Decimal("-5.00")
