"""
Fee configuration tables - receipt numbering and late-fee fine rules
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, UniqueConstraint
from database import Base
import datetime

FINE_FIXED = "fixed"
FINE_PERCENTAGE = "percentage"
FINE_PER_DAY = "per_day"
FINE_TYPES = (FINE_FIXED, FINE_PERCENTAGE, FINE_PER_DAY)


# 1. RECEIPT COUNTER - one counter row per prefix per calendar year
class ReceiptCounter(Base):
    __tablename__ = "receipt_counters"

    id = Column(Integer, primary_key=True, index=True)
    prefix = Column(String(10), nullable=False, default="REC")   # REC for fees, SAL for salary
    year = Column(Integer, nullable=False)          # e.g., 2026
    last_number = Column(Integer, default=0)        # Last used receipt number for this year

    version = Column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("prefix", "year", name="uq_receipt_prefix_year"),
    )


# 2. FINE RULE - late fee once an entry is `days_after_due` days overdue
class FineRule(Base):
    __tablename__ = "fine_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    days_after_due = Column(Integer, nullable=False, default=1)
    fine_type = Column(String(20), nullable=False, default=FINE_FIXED)   # fixed, percentage, per_day
    fine_amount = Column(Numeric(12, 2), nullable=True)       # fixed / per_day
    fine_percentage = Column(Numeric(5, 2), nullable=True)    # percentage of pending
    max_fine_amount = Column(Numeric(12, 2), nullable=True)   # cap, if any

    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
