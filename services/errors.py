"""
Ledger engine errors.

Every error is terminal for the request that triggered it. The HTTP layer
renders them through the handler registered in main.py using `status_code`,
`code` and `extra`.
"""
from decimal import Decimal


class LedgerError(Exception):
    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.message}
        for key, value in self.extra.items():
            body[key] = str(value) if isinstance(value, Decimal) else value
        return body


class ValidationError(LedgerError):
    status_code = 422
    code = "validation_error"


class NoActiveRate(LedgerError):
    status_code = 404
    code = "no_active_rate"


class InvalidEffectiveDate(LedgerError):
    code = "invalid_effective_date"


class FuturePeriodNotPayable(LedgerError):
    code = "future_period_not_payable"


class OverAllocation(LedgerError):
    code = "over_allocation"

    def __init__(self, submitted: Decimal, max_payable: Decimal):
        super().__init__(
            f"Amount {submitted} exceeds the maximum payable amount of {max_payable} "
            f"for the selected entries",
            submitted=submitted,
            max_payable=max_payable,
        )
        self.max_payable = max_payable


class EntryNotFound(LedgerError):
    status_code = 404
    code = "entry_not_found"


class PayerMismatch(LedgerError):
    status_code = 403
    code = "payer_mismatch"


class ConcurrentModification(LedgerError):
    """Another operation on the same payer won the race; the caller may retry."""
    status_code = 409
    code = "concurrent_modification"
