"""
Fee Ledger Router - student fee periods, collection and receipts
Amounts are fixed when a period is generated; payments never exceed what is pending
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db, get_today
from models.ledger import FeeAssignment, LedgerEntry
from schemas.ledger import (
    AssignmentCreate, AssignmentOut, GenerateRequest, LedgerEntryOut, LedgerPeriodOut,
    CollectFeeRequest, CollectFeeResponse, PaymentOut, FineRuleCreate, FineRuleOut,
)
from services import allocator, credits, fines, obligations, reports
from services.errors import EntryNotFound
from decimal import Decimal
from typing import List
import datetime

router = APIRouter(prefix="/api/v1/fee-ledger", tags=["Fee Ledger System"])


# =====================
# HELPER FUNCTIONS
# =====================

ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
        "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
        "Seventeen", "Eighteen", "Nineteen"]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _words(num: int) -> str:
    """Indian numbering: crore, lakh, thousand"""
    parts = []
    for size, name in ((10000000, "Crore"), (100000, "Lakh"), (1000, "Thousand"), (100, "Hundred")):
        if num >= size:
            head = _words(num // size) if size != 100 else ONES[num // size]
            parts.append(f"{head} {name}")
            num %= size
    if num >= 20:
        parts.append(TENS[num // 10])
        num %= 10
    if num > 0:
        parts.append(ONES[num])
    return " ".join(parts)


def amount_in_words(amount: Decimal) -> str:
    """1250.50 -> 'One Thousand Two Hundred Fifty and Fifty Paise Only'"""
    rupees = int(amount)
    paise = int((amount - rupees) * 100)
    text = _words(rupees) or "Zero"
    if paise:
        text += f" and {_words(paise)} Paise"
    return text + " Only"


def _snapshots(db, entries, as_of):
    rules = fines.active_fine_rules(db, as_of)
    return [reports.entry_snapshot(e, as_of, rules) for e in entries]


# =====================
# FEE ASSIGNMENT APIs
# =====================

@router.post("/assignments", response_model=AssignmentOut)
def save_assignment(data: AssignmentCreate, db: Session = Depends(get_db)):
    """Create or update a student's fee configuration (discount / exemption)"""
    return obligations.upsert_assignment(db, **data.model_dump())


@router.get("/assignments/{payer_id}", response_model=List[AssignmentOut])
def get_assignments(payer_id: str, db: Session = Depends(get_db)):
    return db.query(FeeAssignment).filter(FeeAssignment.payer_id == payer_id).all()


# =====================
# PERIOD GENERATION
# =====================

@router.post("/generate", response_model=List[LedgerEntryOut])
def generate_periods(req: GenerateRequest, db: Session = Depends(get_db),
                     today: datetime.date = Depends(get_today)):
    """Materialize fee periods for a date range; already generated periods are skipped"""
    created = obligations.generate_periods(
        db, req.payer_id, req.subject_id, req.subject_type, req.range_start, req.range_end, as_of=today
    )
    return _snapshots(db, created, today)


# =====================
# LEDGER VIEW
# =====================

@router.get("/ledger/{payer_id}", response_model=List[LedgerPeriodOut])
def get_monthly_ledger(payer_id: str, db: Session = Depends(get_db),
                       today: datetime.date = Depends(get_today)):
    """All periods for a student, grouped month by month"""
    return reports.monthly_ledger(db, payer_id, today)


@router.get("/entries/{entry_id}", response_model=LedgerEntryOut)
def get_entry(entry_id: int, db: Session = Depends(get_db),
              today: datetime.date = Depends(get_today)):
    entry = db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).first()
    if entry is None:
        raise EntryNotFound(f"Ledger entry {entry_id} not found", entry_ids=[entry_id])
    return reports.entry_snapshot(entry, today, fines.active_fine_rules(db, today))


# =====================
# PAYMENT COLLECTION API
# =====================

@router.post("/collect", response_model=CollectFeeResponse)
def collect_fee(pay: CollectFeeRequest, db: Session = Depends(get_db),
                today: datetime.date = Depends(get_today)):
    """
    Apply a payment to the selected periods, oldest due first.
    Rejected with the maximum payable amount if it exceeds what is pending.
    """
    result = allocator.apply_payment(
        db, pay.payer_id, pay.entry_ids, pay.amount,
        pay.details.model_dump(), as_of=today, recorded_by=pay.recorded_by,
    )
    return {
        "message": "Payment Successful",
        "payment": result.payment,
        "entries": _snapshots(db, result.entries, today),
    }


@router.post("/credits/{payer_id}/apply")
def apply_open_credit(payer_id: str, db: Session = Depends(get_db),
                      today: datetime.date = Depends(get_today)):
    """Re-run credit application (e.g. after new periods were generated)"""
    applied = credits.apply_credit(db, payer_id, today)
    return {
        "applied": [{"entry_id": entry_id, "amount": amount} for entry_id, amount in applied],
        "remaining_credit": credits.available_credit(db, payer_id),
    }


# =====================
# RECEIPT API
# =====================

@router.get("/receipt/{receipt_no}")
def get_receipt(receipt_no: str, db: Session = Depends(get_db),
                today: datetime.date = Depends(get_today)):
    """Receipt data for printing"""
    receipt = reports.get_receipt(db, receipt_no, today)
    payment = receipt["payment"]
    return {
        "receipt_no": payment.receipt_number,
        "date": str(payment.payment_date),
        "payer_id": payment.payer_id,
        "payment": PaymentOut.model_validate(payment),
        "items": receipt["items"],
        "amount_in_words": amount_in_words(payment.amount_submitted),
    }


# =====================
# HISTORY APIs
# =====================

@router.get("/history/{payer_id}", response_model=List[PaymentOut])
def get_payer_history(payer_id: str, db: Session = Depends(get_db)):
    """Payment history for a student"""
    return reports.payment_history(db, payer_id)


# =====================
# LATE FEE FINE RULES
# =====================

@router.post("/fine-rules", response_model=FineRuleOut)
def create_fine_rule(data: FineRuleCreate, db: Session = Depends(get_db)):
    """Late fee charged on overdue periods; shown on the ledger, never added to pending"""
    return fines.create_fine_rule(db, **data.model_dump())


@router.get("/fine-rules", response_model=List[FineRuleOut])
def get_fine_rules(db: Session = Depends(get_db), today: datetime.date = Depends(get_today)):
    return fines.active_fine_rules(db, today)
