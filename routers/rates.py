"""
Rate Router - fee and transport rates with effective-dated hikes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db, get_today
from schemas.ledger import RateCreate, RateHike, RateVersionOut
from services import rate_versions
from services.errors import NoActiveRate
from typing import List, Optional
import datetime

router = APIRouter(prefix="/api/v1/rates", tags=["Rates"])


@router.post("", response_model=RateVersionOut)
def create_rate(data: RateCreate, db: Session = Depends(get_db)):
    """Open the first rate version for a fee subject"""
    return rate_versions.create_rate(
        db, data.subject_id, data.subject_type, data.amount, data.cycle,
        data.effective_from, notes=data.notes,
    )


@router.post("/{subject_id}/hike", response_model=RateVersionOut)
def hike_rate(subject_id: str, data: RateHike, db: Session = Depends(get_db)):
    """New amount from a future date; bills already generated keep their amount"""
    return rate_versions.hike(
        db, subject_id, data.new_amount, data.effective_from, notes=data.notes,
    )


@router.get("/{subject_id}/history", response_model=List[RateVersionOut])
def get_rate_history(subject_id: str, db: Session = Depends(get_db)):
    versions = rate_versions.history(db, subject_id)
    if not versions:
        raise NoActiveRate(f"{subject_id} has no rate history", subject_id=subject_id)
    return versions


@router.get("/{subject_id}/effective", response_model=RateVersionOut)
def get_effective_rate(subject_id: str, on: Optional[datetime.date] = None,
                       db: Session = Depends(get_db), today: datetime.date = Depends(get_today)):
    return rate_versions.get_effective_rate(db, subject_id, on or today)
