"""
Rate Version Models - Effective-dated amount history
One row per version; a hike closes the current row and opens the next one
"""
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text, JSON, UniqueConstraint, Index
from database import Base
import datetime


# Billing cycles
ONE_TIME = "one-time"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"
PER_TRIP = "per-trip"
WEEKLY = "weekly"
BIWEEKLY = "biweekly"

CYCLES = (ONE_TIME, MONTHLY, QUARTERLY, YEARLY, PER_TRIP, WEEKLY, BIWEEKLY)

# Billable subject types
CLASS_FEE = "class-fee"
TRANSPORT_FEE = "transport-fee"
CUSTOM_FEE = "custom-fee"
SALARY = "salary"

SUBJECT_TYPES = (CLASS_FEE, TRANSPORT_FEE, CUSTOM_FEE, SALARY)
FEE_SUBJECT_TYPES = (CLASS_FEE, TRANSPORT_FEE, CUSTOM_FEE)


class RateVersion(Base):
    __tablename__ = "rate_versions"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(String(64), nullable=False)     # e.g. "class-5:tuition", "route-3", "teacher-12"
    subject_type = Column(String(20), nullable=False)   # class-fee, transport-fee, custom-fee, salary
    amount = Column(Numeric(12, 2), nullable=False)
    cycle = Column(String(20), nullable=False, default=MONTHLY)

    effective_from_date = Column(Date, nullable=False)
    effective_to_date = Column(Date, nullable=True)     # inclusive; NULL = open-ended
    version_number = Column(Integer, nullable=False, default=1)

    # Salary structures keep their components here: {"base_salary": .., "hra": .., ...}
    breakdown = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    # Audit Trail
    created_by = Column(String(50), default="Admin")
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("subject_id", "version_number", name="uq_rate_subject_version"),
        Index("ix_rate_subject_from", "subject_id", "effective_from_date"),
    )

    def covers(self, on_date: datetime.date) -> bool:
        if on_date < self.effective_from_date:
            return False
        return self.effective_to_date is None or on_date <= self.effective_to_date

    def __repr__(self):
        return f"<RateVersion {self.subject_id} v{self.version_number} {self.amount} from {self.effective_from_date}>"
