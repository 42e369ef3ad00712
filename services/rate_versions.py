"""
Rate Version Store - effective-dated amounts for fees and salary structures.

A subject's history is a chain of contiguous versions. `hike` only ever adds
a forward-dated version and closes the current one the day before, so
ledger entries created from older versions keep their amounts.
"""
import datetime
import logging

from sqlalchemy.orm import Session

from models.rate_versions import RateVersion, CYCLES, SUBJECT_TYPES
from services.errors import ValidationError, NoActiveRate, InvalidEffectiveDate
from services.locks import serialized
from services.money import to_money

logger = logging.getLogger(__name__)

ONE_DAY = datetime.timedelta(days=1)


def history(db: Session, subject_id: str):
    """All versions of a subject, oldest first."""
    return (
        db.query(RateVersion)
        .filter(RateVersion.subject_id == subject_id)
        .order_by(RateVersion.version_number.asc())
        .all()
    )


def current_version(db: Session, subject_id: str):
    return (
        db.query(RateVersion)
        .filter(RateVersion.subject_id == subject_id)
        .order_by(RateVersion.version_number.desc())
        .first()
    )


def get_effective_rate(db: Session, subject_id: str, on_date: datetime.date) -> RateVersion:
    version = (
        db.query(RateVersion)
        .filter(
            RateVersion.subject_id == subject_id,
            RateVersion.effective_from_date <= on_date,
        )
        .filter(
            (RateVersion.effective_to_date.is_(None)) | (RateVersion.effective_to_date >= on_date)
        )
        .order_by(RateVersion.version_number.desc())
        .first()
    )
    if version is None:
        raise NoActiveRate(
            f"No rate is effective for {subject_id} on {on_date.isoformat()}",
            subject_id=subject_id,
            on_date=on_date.isoformat(),
        )
    return version


def create_rate(db: Session, subject_id: str, subject_type: str, amount, cycle: str,
                effective_from: datetime.date, notes: str = None, breakdown: dict = None,
                created_by: str = "Admin") -> RateVersion:
    """Open version 1 for a subject that has no history yet."""
    if subject_type not in SUBJECT_TYPES:
        raise ValidationError(f"Unknown subject type: {subject_type}")
    if cycle not in CYCLES:
        raise ValidationError(f"Unknown billing cycle: {cycle}")
    amount = to_money(amount)

    with serialized(db, f"rate:{subject_id}"):
        if current_version(db, subject_id) is not None:
            raise ValidationError(
                f"{subject_id} already has a rate; use a hike to change it",
                subject_id=subject_id,
            )
        version = RateVersion(
            subject_id=subject_id,
            subject_type=subject_type,
            amount=amount,
            cycle=cycle,
            effective_from_date=effective_from,
            effective_to_date=None,
            version_number=1,
            breakdown=breakdown,
            notes=notes,
            created_by=created_by,
        )
        db.add(version)

    logger.info("Rate created for %s: %s %s from %s", subject_id, amount, cycle, effective_from)
    return version


def hike(db: Session, subject_id: str, new_amount, effective_from: datetime.date,
         notes: str = None, breakdown: dict = None, cycle: str = None,
         created_by: str = "Admin") -> RateVersion:
    """Supersede the current version from `effective_from` onwards."""
    new_amount = to_money(new_amount)
    if cycle is not None and cycle not in CYCLES:
        raise ValidationError(f"Unknown billing cycle: {cycle}")

    with serialized(db, f"rate:{subject_id}"):
        current = current_version(db, subject_id)
        if current is None:
            raise NoActiveRate(f"{subject_id} has no rate to hike", subject_id=subject_id)
        if effective_from <= current.effective_from_date:
            logger.warning(
                "Rejected hike of %s dated %s (current version starts %s)",
                subject_id, effective_from, current.effective_from_date,
            )
            raise InvalidEffectiveDate(
                f"Hike must be dated after {current.effective_from_date.isoformat()}, "
                f"the start of the current rate",
                current_effective_from=current.effective_from_date.isoformat(),
            )

        current.effective_to_date = effective_from - ONE_DAY
        version = RateVersion(
            subject_id=subject_id,
            subject_type=current.subject_type,
            amount=new_amount,
            cycle=cycle or current.cycle,
            effective_from_date=effective_from,
            effective_to_date=None,
            version_number=current.version_number + 1,
            breakdown=breakdown,
            notes=notes,
            created_by=created_by,
        )
        db.add(version)

    logger.info(
        "Rate hiked for %s: v%s %s -> v%s %s from %s",
        subject_id, version.version_number - 1, current.amount,
        version.version_number, new_amount, effective_from,
    )
    return version
