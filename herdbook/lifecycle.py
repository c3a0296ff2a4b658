"""
herdbook/lifecycle.py
---------------------
Date arithmetic for the breeding cycle.

Every reminder the breeding center shows is a fixed offset from the
breeding date (or from the day a pregnancy diagnosis was recorded). The
helpers here work on calendar dates only: a ``datetime`` is reduced to its
date before any subtraction, so results never depend on the time of day.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

HEAT_CHECK_DAYS = 21
PD_CHECK_DAYS = 29
GESTATION_DAYS = 283

# After an "Empty" diagnosis
POST_PD_TREATMENT_DAYS = 29
REOPEN_DAYS = 60

DRY_PERIOD_DAYS = 60


@dataclass(frozen=True)
class BreedingDates:
    breeding_date: date
    heat_check_date: date
    pregnancy_check_due_date: date
    expected_calving_date: date


def as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if not value:
            return None
        return date.fromisoformat(value[:10])
    raise TypeError(f"Cannot interpret {value!r} as a date")


def add_days(d, days: int) -> date:
    return as_date(d) + timedelta(days=days)


def days_between(start, end) -> int:
    """Whole days from ``start`` to ``end``; negative when ``end`` is earlier."""
    return (as_date(end) - as_date(start)).days


def days_until(target, today: Optional[date] = None) -> int:
    return days_between(today or date.today(), target)


def days_since(past, today: Optional[date] = None) -> int:
    return days_between(past, today or date.today())


def compute_breeding_dates(breeding_date) -> BreedingDates:
    d = as_date(breeding_date)
    if d is None:
        raise ValueError("Breeding date is required.")
    return BreedingDates(
        breeding_date=d,
        heat_check_date=add_days(d, HEAT_CHECK_DAYS),
        pregnancy_check_due_date=add_days(d, PD_CHECK_DAYS),
        expected_calving_date=add_days(d, GESTATION_DAYS),
    )


def attr(record: Any, name: str, default=None):
    """Read ``name`` from an ORM row, a schema object or a plain dict."""
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def pregnancy_check_due(record) -> Optional[date]:
    # Prefer the stored value; older rows were saved without one
    stored = as_date(attr(record, "pregnancy_check_due_date"))
    if stored is not None:
        return stored
    bred = as_date(attr(record, "breeding_date"))
    return add_days(bred, PD_CHECK_DAYS) if bred else None


def expected_calving(record) -> Optional[date]:
    stored = as_date(attr(record, "expected_calving_date"))
    if stored is not None:
        return stored
    bred = as_date(attr(record, "breeding_date"))
    return add_days(bred, GESTATION_DAYS) if bred else None


def is_confirmed_pregnant(record) -> bool:
    return bool(attr(record, "confirmed_pregnant")) or attr(record, "pd_result") == "Pregnant"


def latest_breeding(records) -> Any:
    dated = [r for r in (records or []) if as_date(attr(r, "breeding_date")) is not None]
    if not dated:
        return None
    return max(dated, key=lambda r: as_date(attr(r, "breeding_date")))


def latest_calving_date(calvings) -> Optional[date]:
    dates = [as_date(attr(c, "calving_date")) for c in (calvings or [])]
    dates = [d for d in dates if d is not None]
    return max(dates) if dates else None
