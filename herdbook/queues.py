from __future__ import annotations

from datetime import date
from typing import Optional

from .lifecycle import as_date, attr, days_until, pregnancy_check_due


def _item(animal, record, due: date, today: date) -> dict:
    return {
        "animal_id": attr(animal, "id"),
        "ear_tag": attr(animal, "ear_tag"),
        "breeding_record_id": attr(record, "id"),
        "breeding_date": as_date(attr(record, "breeding_date")),
        "due_date": due,
        "days_overdue": -days_until(due, today),
    }


def needs_pd_check(animals, today: Optional[date] = None) -> list[dict]:
    """Unchecked breedings whose pregnancy diagnosis is due today or earlier."""
    today = today or date.today()
    out = []
    for animal in animals:
        for record in attr(animal, "breeding_records") or []:
            if attr(record, "pd_result") != "Unchecked":
                continue
            due = pregnancy_check_due(record)
            if due is not None and days_until(due, today) <= 0:
                out.append(_item(animal, record, due, today))
    return sorted(out, key=lambda i: i["due_date"])


def needs_heat_check(animals, today: Optional[date] = None) -> list[dict]:
    """Unchecked breedings past their heat-check date with no heat outcome yet."""
    today = today or date.today()
    out = []
    for animal in animals:
        for record in attr(animal, "breeding_records") or []:
            if attr(record, "pd_result") != "Unchecked":
                continue
            if attr(record, "returned_to_heat") is not None:
                continue
            heat_check = as_date(attr(record, "heat_check_date"))
            if heat_check is not None and days_until(heat_check, today) <= 0:
                out.append(_item(animal, record, heat_check, today))
    return sorted(out, key=lambda i: i["due_date"])


def build_action_queues(animals, today: Optional[date] = None) -> dict:
    today = today or date.today()
    animals = list(animals)
    return {
        "as_of": today,
        "needs_pd_check": needs_pd_check(animals, today),
        "needs_heat_check": needs_heat_check(animals, today),
    }
