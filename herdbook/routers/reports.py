from __future__ import annotations

from collections import defaultdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..status import TERMINAL_STATUSES
from .calvings import summarize_calvings
from .. import models

router = APIRouter(prefix="/reports", tags=["reports"])


def _date_range_filters(start_date, end_date, col):
    if start_date is not None:
        yield col >= start_date
    if end_date is not None:
        yield col <= end_date


def _month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


@router.get("/summary")
def report_summary(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    today = date.today()

    # --- Herd ---
    animals = db.query(models.Animal).all()
    active = [a for a in animals if a.status not in TERMINAL_STATUSES]
    females = [a for a in active if a.sex == "Female"]
    pregnant = [
        a for a in females if a.status == "Pregnant" or a.pregnancy_status == "Pregnant"
    ]
    milking = [a for a in females if a.milking_status == "Milking"]

    # --- Calvings ---
    cq = db.query(models.Calving)
    for f in _date_range_filters(start_date, end_date, models.Calving.calving_date):
        cq = cq.filter(f)
    calvings = cq.all()

    # --- Milk ---
    mq = db.query(models.MilkingRecord)
    for f in _date_range_filters(start_date, end_date, models.MilkingRecord.milking_date):
        mq = mq.filter(f)
    milkings = mq.all()

    total_milk = sum(m.milk_yield or 0 for m in milkings)
    milk_days = {m.milking_date for m in milkings}
    avg_daily_milk = (total_milk / len(milk_days)) if milk_days else None

    # --- Time series ---
    calvings_by_month: dict[str, int] = defaultdict(int)
    for c in calvings:
        calvings_by_month[_month_key(c.calving_date)] += 1

    milk_by_month: dict[str, float] = defaultdict(float)
    for m in milkings:
        milk_by_month[_month_key(m.milking_date)] += float(m.milk_yield or 0)

    months = sorted(set(calvings_by_month) | set(milk_by_month))

    return {
        "range": {
            "start_date": start_date,
            "end_date": end_date,
        },
        "animals": {
            "total": len(animals),
            "active": len(active),
            "female": len(females),
            "pregnant": len(pregnant),
            "milking": len(milking),
        },
        "calvings": summarize_calvings(calvings, today),
        "milk": {
            "total_yield": round(total_milk, 2),
            "records": len(milkings),
            "avg_daily_yield": round(avg_daily_milk, 2) if avg_daily_milk is not None else None,
        },
        "series": {
            "calvings": {
                "name": "Calvings",
                "points": [{"month": mk, "value": calvings_by_month.get(mk, 0)} for mk in months],
            },
            "milk": {
                "name": "Milk (L)",
                "points": [{"month": mk, "value": round(milk_by_month.get(mk, 0.0), 2)} for mk in months],
            },
        },
    }
