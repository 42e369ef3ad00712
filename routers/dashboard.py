from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db, get_today
from services import reports
from typing import Optional
import datetime

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])


@router.get("/unpaid-summary")
def unpaid_summary(subject_type: Optional[str] = None, db: Session = Depends(get_db),
                   today: datetime.date = Depends(get_today)):
    """Pending totals per payer, largest first"""
    return reports.unpaid_summary(db, today, subject_type=subject_type)


@router.get("/collection")
def todays_collection(on: Optional[datetime.date] = None, db: Session = Depends(get_db),
                      today: datetime.date = Depends(get_today)):
    return reports.collection_summary(db, on or today)
