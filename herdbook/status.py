"""
herdbook/status.py
------------------
Display statuses derived from an animal and its breeding/calving history.

Nothing here is stored. Each function is a pure mapping of
(animal, breeding records, calvings, today) to a label plus the badge
variant the UI should use, and is recomputed on every read.

Four independent views exist:

- ``combined_status``  herd list badge, with a sort priority
- ``repro_status``     breeding center badge (heat-check workflow)
- ``classification``   developmental stage (Nursery, Heifer, Dry, ...)
- ``milking_status``   whether the cow belongs in the milking string

``combined_status`` and ``repro_status`` do not share a rule set: the fresh
window is 30 days in the former and 60 in the latter.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Optional

from .lifecycle import (
    DRY_PERIOD_DAYS,
    as_date,
    attr,
    days_since,
    days_until,
    is_confirmed_pregnant,
    latest_breeding,
    latest_calving_date,
    pregnancy_check_due,
)

TERMINAL_STATUSES = ("Sold", "Deceased", "Culled")

FRESH_DAYS = 30
REPRO_FRESH_DAYS = 60
EMPTY_TO_OPEN_DAYS = 60

NURSERY_MAX_MONTHS = 13
HEIFER_MAX_MONTHS = 15

# Lactation
MILKING_AFTER_CALVING_DAYS = 60
DRY_OFF_WEEKS = 30


@dataclass
class StatusInfo:
    label: str
    variant: str
    priority: int = 0
    details: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ReproStatus:
    label: str
    variant: str
    expected_calving_date: Optional[date] = None
    days_until_due: Optional[int] = None
    heat_check_date: Optional[date] = None
    days_since_last_calving: Optional[int] = None
    details: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return asdict(self)


# Fallback when no history decides the status
_LEGACY_STATUS = {
    "Active": StatusInfo("Active", "default", 1),
    "Open": StatusInfo("Open", "outline", 3),
    "Fresh": StatusInfo("Empty", "secondary", 2),
    "Empty": StatusInfo("Empty", "secondary", 2),
    "Pregnant": StatusInfo("Pregnant", "success", 6),
}


def _records(animal, explicit, name: str) -> list:
    if explicit is not None:
        return list(explicit)
    return list(attr(animal, name) or [])


def terminal_status(animal) -> Optional[str]:
    for name in ("status", "pregnancy_status"):
        value = (attr(animal, name) or "").strip()
        if value in TERMINAL_STATUSES:
            return value
    return None


def is_female(animal) -> bool:
    return attr(animal, "sex") == "Female"


def _own(records, animal) -> list:
    # Callers may pass the whole herd's records
    animal_id = attr(animal, "id")
    if animal_id is None:
        return list(records)
    return [r for r in records if attr(r, "animal_id") in (None, animal_id)]


def current_cycle(records, last_calving) -> list:
    """Breedings after the last calving; earlier ones belong to a closed cycle."""
    if last_calving is None:
        return list(records)
    return [r for r in records if (as_date(attr(r, "breeding_date")) or date.min) > last_calving]


def combined_status(
    animal,
    breeding_records=None,
    calvings=None,
    today: Optional[date] = None,
) -> StatusInfo:
    today = today or date.today()

    terminal = terminal_status(animal)
    if terminal:
        variant = "destructive" if terminal == "Deceased" else "outline"
        return StatusInfo(terminal, variant, 0)

    last_calving = latest_calving_date(_own(_records(animal, calvings, "calvings"), animal))
    if last_calving is not None:
        since = days_since(last_calving, today)
        if 0 <= since <= FRESH_DAYS:
            return StatusInfo("Fresh", "default", 7, f"{since}d since calving")

    records = current_cycle(_own(_records(animal, breeding_records, "breeding_records"), animal), last_calving)
    if is_female(animal) and records:
        recent = latest_breeding(records)
        if recent is not None:
            if is_confirmed_pregnant(recent):
                weeks = days_since(attr(recent, "breeding_date"), today) // 7
                return StatusInfo("Pregnant", "success", 6, f"{weeks} weeks")

            if attr(recent, "pd_result") == "Unchecked":
                due = pregnancy_check_due(recent)
                if due is not None and days_until(due, today) <= 0:
                    return StatusInfo("Check Due", "warning", 5, f"PD due {due.isoformat()}")
                detail = f"PD due {due.isoformat()}" if due else None
                return StatusInfo("Awaiting PD Check", "info", 5, detail)

    for name in ("status", "pregnancy_status"):
        mapped = _LEGACY_STATUS.get((attr(animal, name) or "").strip())
        if mapped is not None:
            return StatusInfo(mapped.label, mapped.variant, mapped.priority)
    active = _LEGACY_STATUS["Active"]
    return StatusInfo(active.label, active.variant, active.priority)


def repro_status(
    animal,
    calvings=None,
    breeding_records=None,
    today: Optional[date] = None,
) -> ReproStatus:
    if animal is None or not is_female(animal):
        return ReproStatus("N/A", "outline")

    today = today or date.today()

    last_calving = latest_calving_date(_own(_records(animal, calvings, "calvings"), animal))
    since_calving = days_since(last_calving, today) if last_calving else None

    # Voluntary waiting period
    if since_calving is not None and since_calving <= REPRO_FRESH_DAYS:
        return ReproStatus("Fresh", "default", days_since_last_calving=since_calving)

    records = _own(_records(animal, breeding_records, "breeding_records"), animal)
    active = latest_breeding(current_cycle(records, last_calving))
    if active is not None:
        record_id = attr(active, "id")

        if attr(active, "returned_to_heat"):
            return ReproStatus("Returned to heat", "destructive", details={"breeding_record_id": record_id})

        if is_confirmed_pregnant(active):
            expected = as_date(attr(active, "expected_calving_date"))
            return ReproStatus(
                "Pregnant",
                "secondary",
                expected_calving_date=expected,
                days_until_due=days_until(expected, today) if expected else None,
            )

        pd_result = attr(active, "pd_result")
        if pd_result == "Unchecked":
            heat_check = as_date(attr(active, "heat_check_date")) or as_date(
                attr(active, "pregnancy_check_due_date")
            )
            if heat_check is not None and days_until(heat_check, today) <= 0:
                return ReproStatus(
                    "Heat check due",
                    "destructive",
                    heat_check_date=heat_check,
                    details={"breeding_record_id": record_id},
                )
            return ReproStatus(
                "Pending PD",
                "outline",
                heat_check_date=heat_check,
                details={"breeding_record_id": record_id},
            )

        if pd_result == "Empty":
            empty_since = as_date(attr(active, "breeding_date")) or pregnancy_check_due(active)
            days_empty = days_since(empty_since, today)
            if days_empty < EMPTY_TO_OPEN_DAYS:
                return ReproStatus(
                    "Empty",
                    "destructive",
                    details={"days_empty": days_empty, "breeding_record_id": record_id},
                )
            return ReproStatus("Open", "outline", details={"days_empty": days_empty})

    return ReproStatus("Open", "outline", days_since_last_calving=since_calving)


def age_in_months(birth_date, today: date) -> int:
    born = as_date(birth_date)
    months = (today.year - born.year) * 12 + (today.month - born.month)
    if today.day < born.day:
        months -= 1
    return months


def _is_pregnant(animal, records) -> bool:
    for name in ("status", "pregnancy_status"):
        if (attr(animal, name) or "").strip() == "Pregnant":
            return True
    recent = latest_breeding(records)
    return recent is not None and is_confirmed_pregnant(recent)


def days_to_nearest_calving(records, today: date) -> Optional[int]:
    """Smallest non-negative day count to any record's expected calving."""
    upcoming = []
    for r in records:
        if attr(r, "pd_result") == "Empty":
            continue
        expected = as_date(attr(r, "expected_calving_date"))
        if expected is None:
            continue
        remaining = days_until(expected, today)
        if remaining >= 0:
            upcoming.append(remaining)
    return min(upcoming) if upcoming else None


def classification(animal, breeding_records=None, today: Optional[date] = None) -> StatusInfo:
    today = today or date.today()

    if (attr(animal, "status") or "").strip() == "Fresh":
        return StatusInfo("Milking", "success")

    birth = as_date(attr(animal, "birth_date"))
    if birth is not None and birth > today:
        return StatusInfo("Not Born Yet", "outline")

    records = _own(_records(animal, breeding_records, "breeding_records"), animal)
    pregnant = _is_pregnant(animal, records)

    if pregnant:
        remaining = days_to_nearest_calving(records, today)
        if remaining is not None and remaining <= DRY_PERIOD_DAYS:
            return StatusInfo("Dry", "warning", details=f"{remaining}d to calving")

    if birth is None:
        return StatusInfo("Unknown", "outline")

    months = age_in_months(birth, today)
    if months <= NURSERY_MAX_MONTHS:
        return StatusInfo("Nursery", "default", details=f"{months} months")
    if months <= HEIFER_MAX_MONTHS:
        return StatusInfo("Heifer", "secondary", details=f"{months} months")
    if pregnant:
        return StatusInfo("Pregnant Cow", "success")
    return StatusInfo("Adult Cow", "secondary")


def milking_status(animal, breeding_records=None, calvings=None, today: Optional[date] = None) -> StatusInfo:
    """
    Whether a cow should be in the milking string.

    A cow that calved in the last 60 days and has not been confirmed in calf
    again is milking whatever was entered by hand. A manual "Dry" only holds
    while she is pregnant, a manual "Milking" always holds, and otherwise she
    is dried off from 30 weeks in calf.
    """
    if not is_female(animal):
        return StatusInfo("N/A", "default")

    today = today or date.today()

    last_calving = latest_calving_date(_own(_records(animal, calvings, "calvings"), animal))
    records = current_cycle(_own(_records(animal, breeding_records, "breeding_records"), animal), last_calving)
    recent = latest_breeding(records)
    pregnant = recent is not None and is_confirmed_pregnant(recent)
    weeks = days_since(attr(recent, "breeding_date"), today) // 7 if pregnant else 0

    if last_calving is not None and not pregnant:
        if days_since(last_calving, today) <= MILKING_AFTER_CALVING_DAYS:
            return StatusInfo("Milking", "success")

    manual = (attr(animal, "milking_status") or "").strip()
    if manual == "Dry" and pregnant:
        return StatusInfo("Dry", "warning", details=f"{weeks} weeks")
    if manual == "Milking":
        return StatusInfo("Milking", "success")

    if pregnant and weeks >= DRY_OFF_WEEKS:
        return StatusInfo("Dry", "warning", details=f"{weeks} weeks")
    return StatusInfo("Milking", "success")


def animal_statuses(animal, today: Optional[date] = None) -> dict[str, Any]:
    """Every view for one ORM animal with its relationships loaded."""
    return {
        "milking": milking_status(animal, today=today).as_dict(),
        "combined": combined_status(animal, today=today).as_dict(),
        "repro": repro_status(animal, today=today).as_dict(),
        "classification": classification(animal, today=today).as_dict(),
    }
