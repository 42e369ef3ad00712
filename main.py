import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from config import settings
from database import engine, Base
from services.errors import LedgerError

# --- IMPORT ROUTERS (APIs) ---
from routers import dashboard, fee_ledger, rates, salary

# --- IMPORT MODELS (registers tables on Base) ---
from models.rate_versions import RateVersion
from models.ledger import FeeAssignment, LedgerEntry, PaymentRecord, PaymentAllocation, CreditBalance, CreditApplication
from models.fee_models import ReceiptCounter, FineRule

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("ledger")

# --- CREATE DATABASE TABLES ---
Base.metadata.create_all(bind=engine)

app = FastAPI(title="School Fee & Salary Ledger")

# ==========================================
# ✅ CORS MIDDLEWARE
# ==========================================
origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================
# ✅ ENGINE ERRORS -> JSON
# ==========================================
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# --- REGISTER ROUTERS ---
app.include_router(rates.router)
app.include_router(fee_ledger.router)
app.include_router(salary.router)
app.include_router(dashboard.router)


@app.get("/health")
def health():
    return {"status": "ok"}
