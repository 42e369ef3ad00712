import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings


def build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI serves requests from a thread pool
        connect_args = {"check_same_thread": False}
    return create_engine(url, echo=settings.SQL_ECHO, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_today() -> datetime.date:
    """The engine never reads the clock itself; routers inject this as `as_of`."""
    return datetime.date.today()
