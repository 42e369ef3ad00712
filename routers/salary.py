"""
Salary Router - teacher salary structures, monthly salary periods and payments
Overpaying a month is allowed: the excess becomes credit for the next unpaid months
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db, get_today
from models.rate_versions import SALARY
from schemas.ledger import (
    SalaryStructureCreate, RateVersionOut, LedgerEntryOut, SalaryPaymentRequest,
    SalaryPaymentResponse, SalaryPaymentType, PaymentOut,
)
from services import allocator, credits, obligations, rate_versions, reports
from pydantic import BaseModel
from typing import List, Optional
import datetime

router = APIRouter(prefix="/api/v1/salary", tags=["Salary"])


class SalaryGenerateRequest(BaseModel):
    teacher_id: str
    range_start: datetime.date
    range_end: datetime.date


def salary_subject(teacher_id: str) -> str:
    """Each teacher's salary structure is its own rate subject"""
    return f"salary:{teacher_id}"


@router.post("/structure", response_model=RateVersionOut)
def save_salary_structure(data: SalaryStructureCreate, db: Session = Depends(get_db)):
    """
    First structure opens version 1; later ones are hikes and must be dated
    after the current structure's effective date.
    """
    subject_id = salary_subject(data.teacher_id)
    if rate_versions.current_version(db, subject_id) is None:
        version = rate_versions.create_rate(
            db, subject_id, SALARY, data.net_salary, data.salary_cycle,
            data.effective_from_date, notes=data.notes, breakdown=data.breakdown(),
        )
        obligations.upsert_assignment(
            db, data.teacher_id, subject_id, SALARY, start_date=data.effective_from_date,
        )
        return version
    return rate_versions.hike(
        db, subject_id, data.net_salary, data.effective_from_date,
        notes=data.notes, breakdown=data.breakdown(), cycle=data.salary_cycle,
    )


@router.get("/structure/{teacher_id}/history", response_model=List[RateVersionOut])
def get_salary_history(teacher_id: str, db: Session = Depends(get_db)):
    return rate_versions.history(db, salary_subject(teacher_id))


@router.post("/generate", response_model=List[LedgerEntryOut])
def generate_salary_periods(req: SalaryGenerateRequest, db: Session = Depends(get_db),
                            today: datetime.date = Depends(get_today)):
    created = obligations.generate_periods(
        db, req.teacher_id, salary_subject(req.teacher_id), SALARY,
        req.range_start, req.range_end, as_of=today,
    )
    return [reports.entry_snapshot(e, today) for e in created]


@router.post("/payments", response_model=SalaryPaymentResponse)
def record_salary_payment(pay: SalaryPaymentRequest, db: Session = Depends(get_db),
                          today: datetime.date = Depends(get_today)):
    """Full, partial or advance salary payment for one month"""
    result = allocator.record_salary_payment(
        db, pay.teacher_id, pay.salary_year, pay.salary_month, pay.amount,
        pay.details.model_dump(), as_of=today, recorded_by=pay.recorded_by,
        payment_type=pay.payment_type,
    )

    credit = None
    message = "Payment recorded successfully."
    if result.excess_amount > 0:
        credit = {
            "excess_amount": result.excess_amount,
            "amount_applied": result.amount_applied,
            "periods_applied": result.periods_applied,
            "remaining_credit": result.remaining_credit,
        }
        applied_to = ", ".join(result.periods_applied) or "no open periods yet"
        message = (
            f"Payment recorded. Excess amount of {result.excess_amount} became credit; "
            f"{result.amount_applied} applied to {applied_to}, {result.remaining_credit} remaining."
        )

    return {
        "message": message,
        "payment": result.payment,
        "entries": [reports.entry_snapshot(e, today) for e in result.entries],
        "credit": credit,
    }


@router.get("/history/{teacher_id}", response_model=List[PaymentOut])
def get_salary_payment_history(teacher_id: str, payment_type: Optional[SalaryPaymentType] = None,
                               db: Session = Depends(get_db)):
    """Salary payments for a teacher, newest first; optionally only one payment type"""
    return reports.payment_history(db, teacher_id, payment_type=payment_type)


@router.get("/credits/{teacher_id}")
def get_credit_balance(teacher_id: str, db: Session = Depends(get_db)):
    """Available credit and how earlier credit was used"""
    return credits.credit_summary(db, teacher_id)


@router.get("/unpaid")
def get_unpaid_salaries(db: Session = Depends(get_db), today: datetime.date = Depends(get_today)):
    return reports.unpaid_summary(db, today, subject_type=SALARY)
