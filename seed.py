import datetime
from database import SessionLocal, engine, Base
from models.rate_versions import RateVersion, CLASS_FEE, TRANSPORT_FEE, CUSTOM_FEE, SALARY, MONTHLY, YEARLY, ONE_TIME
from models.ledger import FeeAssignment
from models.fee_models import ReceiptCounter  # noqa: F401 (table registration)
from services import obligations, rate_versions

# --- Create any missing tables ---
Base.metadata.create_all(bind=engine)

SESSION_START = datetime.date(2025, 4, 1)


def seed_data():
    db = SessionLocal()
    print("🌱 Seeding rates...")

    # 1. CLASS FEES (Class 1 to Class 12)
    rates = [(f"class-{n}:tuition", CLASS_FEE, 800 + n * 100, MONTHLY) for n in range(1, 13)]

    # 2. TRANSPORT ROUTES
    rates += [
        ("route:city-centre", TRANSPORT_FEE, 1200, MONTHLY),
        ("route:railway-station", TRANSPORT_FEE, 1500, MONTHLY),
        ("route:airport-road", TRANSPORT_FEE, 2000, MONTHLY),
        ("route:local-village", TRANSPORT_FEE, 500, MONTHLY),
    ]

    # 3. CUSTOM FEES
    rates += [
        ("custom:admission", CUSTOM_FEE, 5000, ONE_TIME),
        ("custom:annual-function", CUSTOM_FEE, 1500, YEARLY),
    ]

    # 4. SALARY STRUCTURES
    rates += [
        ("salary:teacher-1", SALARY, 25000, MONTHLY),
        ("salary:teacher-2", SALARY, 30000, MONTHLY),
    ]

    for subject_id, subject_type, amount, cycle in rates:
        if db.query(RateVersion).filter_by(subject_id=subject_id).first():
            print(f"ℹ️  Exists: {subject_id}")
            continue
        rate_versions.create_rate(db, subject_id, subject_type, amount, cycle, SESSION_START,
                                  notes="Opening rate", created_by="seed")
        print(f"💰 Added Rate: {subject_id} = {amount} ({cycle})")

    # 5. DEMO ASSIGNMENTS
    assignments = [
        ("student-1", "class-5:tuition", CLASS_FEE, 0, False),
        ("student-1", "route:city-centre", TRANSPORT_FEE, 200, False),
        ("student-2", "class-5:tuition", CLASS_FEE, 0, True),
        ("teacher-1", "salary:teacher-1", SALARY, 0, False),
    ]
    for payer_id, subject_id, subject_type, discount, exempt in assignments:
        if db.query(FeeAssignment).filter_by(payer_id=payer_id, subject_id=subject_id).first():
            continue
        obligations.upsert_assignment(db, payer_id, subject_id, subject_type, SESSION_START,
                                      discount_amount=discount, is_exempt=exempt)
        print(f"  └── {payer_id} assigned {subject_id}")

    print("\n🎉 All Data Seeded Successfully!")
    db.close()


if __name__ == "__main__":
    seed_data()
