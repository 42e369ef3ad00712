from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union


CycleName = Literal["one-time", "monthly", "quarterly", "yearly", "per-trip", "weekly", "biweekly"]
SubjectType = Literal["class-fee", "transport-fee", "custom-fee", "salary"]
FeeSubjectType = Literal["class-fee", "transport-fee", "custom-fee"]
SalaryPaymentType = Literal["salary", "advance", "adjustment", "bonus", "loan", "other"]


# =====================
# PAYMENT METADATA (tagged by mode)
# =====================

class _PaymentBase(BaseModel):
    payment_date: Optional[date] = None      # defaults to today
    notes: Optional[str] = Field(default=None, max_length=500)


class CashPayment(_PaymentBase):
    mode: Literal["cash"]


class UpiPayment(_PaymentBase):
    mode: Literal["upi"]
    transaction_id: str = Field(min_length=1, max_length=100)


class CardPayment(_PaymentBase):
    mode: Literal["card"]
    transaction_id: Optional[str] = Field(default=None, max_length=100)


class OnlinePayment(_PaymentBase):
    mode: Literal["online"]
    transaction_id: str = Field(min_length=1, max_length=100)


class ChequePayment(_PaymentBase):
    mode: Literal["cheque"]
    cheque_number: str = Field(min_length=1, max_length=50)
    bank_name: str = Field(min_length=1, max_length=100)


class BankTransferPayment(_PaymentBase):
    mode: Literal["bank_transfer"]
    transaction_id: str = Field(min_length=1, max_length=100)
    bank_name: Optional[str] = Field(default=None, max_length=100)


PaymentDetails = Annotated[
    Union[CashPayment, UpiPayment, CardPayment, OnlinePayment, ChequePayment, BankTransferPayment],
    Field(discriminator="mode"),
]


# =====================
# RATES
# =====================

class RateCreate(BaseModel):
    subject_id: str = Field(min_length=1, max_length=64)
    subject_type: SubjectType
    amount: Decimal = Field(ge=0)
    cycle: CycleName = "monthly"
    effective_from: date
    notes: Optional[str] = None


class RateHike(BaseModel):
    new_amount: Decimal = Field(ge=0)
    effective_from: date
    notes: Optional[str] = None


class RateVersionOut(BaseModel):
    id: int
    subject_id: str
    subject_type: str
    amount: Decimal
    cycle: str
    effective_from_date: date
    effective_to_date: Optional[date] = None
    version_number: int
    breakdown: Optional[dict] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class SalaryStructureCreate(BaseModel):
    teacher_id: str = Field(min_length=1, max_length=64)
    base_salary: Decimal = Field(ge=0)
    hra: Decimal = Field(default=Decimal("0"), ge=0)
    other_allowances: Decimal = Field(default=Decimal("0"), ge=0)
    fixed_deductions: Decimal = Field(default=Decimal("0"), ge=0)
    salary_cycle: Literal["monthly", "weekly", "biweekly"] = "monthly"
    effective_from_date: date
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_net(self):
        if self.net_salary < 0:
            raise ValueError("Deductions exceed gross salary")
        return self

    @property
    def net_salary(self) -> Decimal:
        return self.base_salary + self.hra + self.other_allowances - self.fixed_deductions

    def breakdown(self) -> dict:
        return {
            "base_salary": str(self.base_salary),
            "hra": str(self.hra),
            "other_allowances": str(self.other_allowances),
            "fixed_deductions": str(self.fixed_deductions),
        }


# =====================
# ASSIGNMENTS & GENERATION
# =====================

class AssignmentCreate(BaseModel):
    payer_id: str = Field(min_length=1, max_length=64)
    subject_id: str = Field(min_length=1, max_length=64)
    subject_type: SubjectType
    start_date: date
    end_date: Optional[date] = None
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    is_exempt: bool = False
    remarks: Optional[str] = None


class AssignmentOut(AssignmentCreate):
    id: int

    class Config:
        from_attributes = True


class GenerateRequest(BaseModel):
    payer_id: str = Field(min_length=1, max_length=64)
    subject_id: str = Field(min_length=1, max_length=64)
    subject_type: SubjectType
    range_start: date
    range_end: date


class LedgerEntryOut(BaseModel):
    id: int
    payer_id: str
    subject_id: str
    subject_type: str
    period_year: int
    period_month: Optional[int] = None
    period_label: str
    period_start: date
    period_end: date
    due_date: date
    assigned_amount: Decimal
    paid_amount: Decimal
    credit_applied_amount: Decimal
    pending_amount: Decimal
    status: str
    rate_version_id: Optional[int] = None
    fine_amount: Decimal = Decimal("0")

    class Config:
        from_attributes = True


class LedgerPeriodOut(BaseModel):
    period_year: int
    period_month: Optional[int] = None
    period_label: str
    entries: List[LedgerEntryOut]
    total_assigned: Decimal
    total_paid: Decimal
    total_credit_applied: Decimal
    total_pending: Decimal
    total_fine: Decimal = Decimal("0")


# =====================
# PAYMENTS
# =====================

class CollectFeeRequest(BaseModel):
    payer_id: str = Field(min_length=1, max_length=64)
    entry_ids: List[int] = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    details: PaymentDetails
    recorded_by: str = "Admin"


class SalaryPaymentRequest(BaseModel):
    teacher_id: str = Field(min_length=1, max_length=64)
    salary_year: int = Field(ge=2000, le=2100)
    salary_month: int = Field(ge=1, le=12)
    amount: Decimal = Field(gt=0)
    details: PaymentDetails
    payment_type: SalaryPaymentType = "salary"
    recorded_by: str = "Admin"


class PaymentOut(BaseModel):
    id: int
    payer_id: str
    flow: str
    payment_type: Optional[str] = None
    receipt_number: str
    amount_submitted: Decimal
    amount_allocated: Decimal
    excess_amount: Decimal
    payment_date: date
    mode: str
    transaction_id: Optional[str] = None
    cheque_number: Optional[str] = None
    bank_name: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: Optional[str] = None
    entry_ids: List[int] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CollectFeeResponse(BaseModel):
    message: str
    payment: PaymentOut
    entries: List[LedgerEntryOut]


class CreditSummaryOut(BaseModel):
    excess_amount: Decimal
    amount_applied: Decimal
    periods_applied: List[str]
    remaining_credit: Decimal


class SalaryPaymentResponse(BaseModel):
    message: str
    payment: PaymentOut
    entries: List[LedgerEntryOut]
    credit: Optional[CreditSummaryOut] = None


# =====================
# LATE FEE FINES
# =====================

class FineRuleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    fine_type: Literal["fixed", "percentage", "per_day"] = "fixed"
    days_after_due: int = Field(default=1, ge=1)
    fine_amount: Optional[Decimal] = Field(default=None, ge=0)
    fine_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    max_fine_amount: Optional[Decimal] = Field(default=None, ge=0)
    effective_from: date
    effective_to: Optional[date] = None


class FineRuleOut(FineRuleCreate):
    id: int
    is_active: bool

    class Config:
        from_attributes = True
