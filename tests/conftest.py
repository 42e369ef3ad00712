import os

os.environ.setdefault("APP_ENV", "test")

import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine, get_db, get_today
import models.rate_versions  # noqa: F401
import models.ledger  # noqa: F401
import models.fee_models  # noqa: F401
from services import obligations, rate_versions


@pytest.fixture
def engine(tmp_path):
    # A file database so that several threads can share it
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def today():
    return {"value": datetime.date(2024, 1, 20)}


@pytest.fixture
def client(session_factory, today):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: today["value"]
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def monthly_fee(db):
    """Tuition of 1000 a month from Jan 2024."""
    rate_versions.create_rate(
        db, "class-5:tuition", "class-fee", 1000, "monthly", datetime.date(2024, 1, 1)
    )
    return "class-5:tuition"


def generate(db, payer_id, subject_id, start, end, as_of, subject_type="class-fee"):
    return obligations.generate_periods(db, payer_id, subject_id, subject_type, start, end, as_of=as_of)


def money(value) -> Decimal:
    return Decimal(str(value))
