from decimal import Decimal, ROUND_HALF_UP

from services.errors import ValidationError

CENT = Decimal("0.01")


def to_money(value, allow_negative: bool = False) -> Decimal:
    """Normalize an int/float/str/Decimal amount to two decimal places."""
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f"Not a valid amount: {value!r}")
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except ArithmeticError:
        raise ValidationError(f"Not a valid amount: {value!r}")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"Amount cannot be negative: {amount}")
    return amount
