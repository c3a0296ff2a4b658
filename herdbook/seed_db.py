"""
herdbook/seed_db.py
-------------------
Populates the database with demo data for a small dairy herd: cows and
bulls, breedings at every stage of the PD cycle, calvings, milking logs,
medicine stock, diesel and feed ledgers and a whitelist entry.

Run from the project root:
    python -m herdbook.seed_db

Pass --reset to wipe the database first:
    python -m herdbook.seed_db --reset
"""
from __future__ import annotations

import os
import sys
import random
from datetime import date, timedelta
from urllib.parse import urlparse

from .config import get_settings
from .database import Base, make_engine, make_session_factory
from .lifecycle import GESTATION_DAYS, POST_PD_TREATMENT_DAYS, REOPEN_DAYS, add_days, compute_breeding_dates
from . import models


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _days_ago(n: int) -> date:
    return date.today() - timedelta(days=n)


def _remove_sqlite_file_if_local(database_url: str) -> None:
    """Delete the SQLite file so we start completely fresh."""
    # urlparse turns  sqlite:///./foo.db  into  path=/./foo.db
    path = urlparse(database_url).path.lstrip("/")
    if path and path != ":memory:" and os.path.exists(path):
        os.remove(path)
        print(f"  Removed existing database: {path}")


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

BREEDS = ["Holstein Friesian", "Jersey", "Ayrshire", "Brown Swiss"]

MEDICINES = [
    # (name, stock, unit, low threshold, days until expiry)
    ("Oxytetracycline", 250.0, "ml", 50.0, 200),
    ("Prostaglandin (PGF2a)", 8.0, "doses", 10.0, 120),
    ("Calcium borogluconate", 6.0, "bottles", 4.0, 20),
    ("Ivermectin pour-on", 1.5, "l", None, 400),
]


def seed(db) -> None:
    random.seed(42)      # reproducible

    # ------------------------------------------------------------------
    # 1. Herd: 6 cows, 2 bulls
    # ------------------------------------------------------------------
    print("  Creating herd...")

    cows = [
        models.Animal(ear_tag=f"C{100 + i}", name=name, sex="Female", status="Active",
                      breed=BREEDS[i % len(BREEDS)], birth_date=_days_ago(age),
                      pregnancy_status="Open", milking_status="Dry")
        for i, (name, age) in enumerate([
            ("Daisy", 1600), ("Bella", 1450), ("Molly", 1300),
            ("Rosie", 1100), ("Clover", 900), ("Buttercup", 800),
        ])
    ]
    bulls = [
        models.Animal(ear_tag="B1", name="Duke", sex="Male", status="Active",
                      breed=BREEDS[0], birth_date=_days_ago(1500)),
        models.Animal(ear_tag="B2", name="Samson", sex="Male", status="Active",
                      breed=BREEDS[1], birth_date=_days_ago(1200)),
    ]
    heifer = models.Animal(ear_tag="H201", name="Pip", sex="Female", status="Active",
                           breed=BREEDS[1], birth_date=_days_ago(200))

    for a in cows + bulls + [heifer]:
        db.add(a)
    db.flush()

    # ------------------------------------------------------------------
    # 2. Breedings, one per stage
    # ------------------------------------------------------------------
    print("  Creating breedings...")

    plan = [
        # (cow_idx, bull_idx, days_ago_bred, outcome)
        (0, 0, 300, "calved"),
        (1, 1, 200, "Pregnant"),
        (2, 0, 35, "Unchecked"),      # PD overdue
        (3, 1, 24, "Unchecked"),      # heat check due
        (4, 0, 40, "Empty"),
        (5, 1, 5, "Unchecked"),
    ]

    today = date.today()
    for cow_idx, bull_idx, days_ago, outcome in plan:
        cow = cows[cow_idx]
        dates = compute_breeding_dates(_days_ago(days_ago))
        record = models.BreedingRecord(
            animal_id=cow.id,
            breeding_date=dates.breeding_date,
            sire_ear_tag=bulls[bull_idx].ear_tag,
            breeding_method=random.choice(["Natural", "AI"]),
            pd_result="Unchecked",
            heat_check_date=dates.heat_check_date,
            pregnancy_check_due_date=dates.pregnancy_check_due_date,
            expected_calving_date=dates.expected_calving_date,
        )
        db.add(record)

        if outcome == "Unchecked":
            cow.pregnancy_status = "Waiting for PD"
            continue

        checked_on = dates.pregnancy_check_due_date
        record.pregnancy_check_date = checked_on
        if outcome in ("Pregnant", "calved"):
            record.pd_result = "Pregnant"
            record.confirmed_pregnant = True
            record.expected_calving_date = add_days(dates.breeding_date, GESTATION_DAYS)
            cow.status = "Pregnant"
            cow.pregnancy_status = "Pregnant"
            cow.expected_calving_date = record.expected_calving_date
            db.add(models.Notification(
                animal_id=cow.id,
                title="Expected calving soon",
                body=f"Expected calving for {cow.ear_tag} on {record.expected_calving_date}.",
                scheduled_for=record.expected_calving_date,
            ))
        else:
            record.pd_result = "Empty"
            record.expected_calving_date = None
            record.post_pd_treatment_due_date = add_days(checked_on, POST_PD_TREATMENT_DAYS)
            record.keep_in_breeding_until = record.post_pd_treatment_due_date
            cow.status = "Empty"
            cow.pregnancy_status = "Empty"
            cow.reopen_date = add_days(checked_on, REOPEN_DAYS)

        if outcome == "calved":
            calving_date = _days_ago(20)
            db.flush()
            calf = models.Animal(ear_tag="H202", sex="Female", status="Active",
                                 breed=cow.breed, birth_date=calving_date,
                                 dam_id=cow.id, sire_id=bulls[bull_idx].id)
            db.add(calf)
            db.flush()
            db.add(models.Calving(
                animal_id=cow.id,
                breeding_record_id=record.id,
                calving_date=calving_date,
                calf_ear_tag=calf.ear_tag,
                calf_sex="Female",
                birth_weight=round(random.uniform(32, 42), 1),
                calf_id=calf.id,
            ))
            cow.status = "Fresh"
            cow.pregnancy_status = "Empty"
            cow.milking_status = "Milking"
            cow.expected_calving_date = None

    db.flush()

    # ------------------------------------------------------------------
    # 3. Milking for the fresh cow, last two weeks
    # ------------------------------------------------------------------
    print("  Creating milking records...")

    milkers = [c for c in cows if c.milking_status == "Milking"]
    for cow in milkers:
        for n in range(14):
            db.add(models.MilkingRecord(
                animal_id=cow.id,
                milking_date=_days_ago(n),
                milk_yield=round(random.uniform(18, 32), 1),
                fat_percentage=round(random.uniform(3.4, 4.6), 2),
                protein_percentage=round(random.uniform(3.0, 3.6), 2),
            ))

    # ------------------------------------------------------------------
    # 4. Medicines and a post-PD treatment
    # ------------------------------------------------------------------
    print("  Creating medicines...")

    meds = []
    for name, stock, unit, threshold, expires_in in MEDICINES:
        m = models.Medicine(name=name, stock_quantity=stock, unit=unit,
                            low_stock_threshold=threshold,
                            expiration_date=today + timedelta(days=expires_in))
        db.add(m)
        meds.append(m)
    db.flush()

    db.add(models.HealthRecord(
        animal_id=cows[2].id,
        record_date=_days_ago(12),
        record_type="Treatment",
        description="Mild lameness, left hind",
        treatment="Foot trim and block",
        veterinarian="Dr. Okafor",
    ))

    # ------------------------------------------------------------------
    # 5. Ledgers
    # ------------------------------------------------------------------
    print("  Creating diesel and feed entries...")

    db.add(models.Diesel(event_date=_days_ago(30), volume_liters=500, type="addition", reference="INV-2231"))
    for n in (25, 18, 11, 4):
        db.add(models.Diesel(event_date=_days_ago(n), volume_liters=round(random.uniform(40, 70), 1),
                             type="consumption", recorded_by="yard"))
    db.add(models.Diesel(event_date=_days_ago(2), volume_liters=-3.5, type="correction",
                         reference="dipstick"))

    db.add(models.Feed(event_date=_days_ago(30), feeds=2000, reference="Silage delivery"))
    for n in range(28, 0, -7):
        db.add(models.Feed(event_date=_days_ago(n), feeds=-round(random.uniform(250, 350)),
                           recorded_by="yard"))

    db.add(models.EmailWhitelist(email="manager@example.com", notes="Farm manager"))

    db.commit()

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    print(f"\n  Animals:        {db.query(models.Animal).count()}")
    print(f"  Breedings:      {db.query(models.BreedingRecord).count()}")
    print(f"  Calvings:       {db.query(models.Calving).count()}")
    print(f"  Milking logs:   {db.query(models.MilkingRecord).count()}")
    print(f"  Medicines:      {len(meds)}")
    print(f"  Notifications:  {db.query(models.Notification).count()}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    settings = get_settings()
    reset = "--reset" in sys.argv

    if reset:
        print("Resetting database...")
        _remove_sqlite_file_if_local(settings.database_url)

    print("Creating tables...")
    engine = make_engine(settings)
    Base.metadata.create_all(bind=engine)

    print("Seeding data...")
    db = make_session_factory(engine)()
    try:
        seed(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print("\nDone. Run the app with:")
    print("  python -m uvicorn herdbook.main:app --reload")


if __name__ == "__main__":
    main()
