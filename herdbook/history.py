"""
herdbook/history.py
-------------------
Client-side view over the breeding history list.

After a pregnancy diagnosis is confirmed, the next fetch of the breeding
list may not reflect it yet, or may already have dropped the record
(the list only covers animals still in the breeding program). The view
keeps two local maps on top of whatever the server last returned:

- ``overrides``  record id -> partial patch applied over the server row
- ``pinned``     record id -> full copy of a record kept on screen after an
                 "Empty" result, until its keep-until date passes

Neither map is persisted. ``rows()`` merges them with a freshly fetched
base list and drops pins the server has caught up with.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional

from .lifecycle import (
    GESTATION_DAYS,
    POST_PD_TREATMENT_DAYS,
    add_days,
    as_date,
    attr,
    days_until,
    pregnancy_check_due,
)

logger = logging.getLogger(__name__)

PD_RESULTS = ("Pregnant", "Empty")


def keep_until(record) -> Optional[date]:
    return as_date(attr(record, "keep_in_breeding_until")) or as_date(
        attr(record, "post_pd_treatment_due_date")
    )


def is_visible(record, treated: bool = False, today: Optional[date] = None) -> bool:
    """An "Empty" record leaves the list once its keep-until date has passed,
    unless a post-PD treatment was recorded against it."""
    if attr(record, "pd_result") != "Empty" or treated:
        return True
    until = keep_until(record)
    if until is None:
        return True
    return (today or date.today()) <= until


def needs_early_confirmation(record, today: Optional[date] = None) -> bool:
    due = pregnancy_check_due(record)
    return due is not None and days_until(due, today or date.today()) > 0


def _as_dict(record) -> dict:
    if isinstance(record, dict):
        return dict(record)
    if hasattr(record, "model_dump"):
        return record.model_dump()
    return {c: getattr(record, c) for c in record.__table__.columns.keys()}


class BreedingHistoryView:
    def __init__(self) -> None:
        self.overrides: dict[int, dict] = {}
        self.pinned: dict[int, dict] = {}
        self.pin_until: dict[int, date] = {}

    # -----------------------------
    # Optimistic patches
    # -----------------------------
    def mark_pregnant(self, record, today: Optional[date] = None) -> dict:
        today = today or date.today()
        rid = attr(record, "id")
        patch = {
            "pd_result": "Pregnant",
            "pregnancy_check_date": today,
            "expected_calving_date": add_days(attr(record, "breeding_date"), GESTATION_DAYS),
        }
        self.overrides[rid] = {**self.overrides.get(rid, {}), **patch}
        self.pinned.pop(rid, None)
        self.pin_until.pop(rid, None)
        return patch

    def mark_empty(self, record, today: Optional[date] = None) -> dict:
        today = today or date.today()
        rid = attr(record, "id")
        helper_date = add_days(today, POST_PD_TREATMENT_DAYS)
        patch = {
            "pd_result": "Empty",
            "pregnancy_check_date": today,
            "expected_calving_date": None,
            "post_pd_treatment_due_date": helper_date,
            "keep_in_breeding_until": helper_date,
        }
        self.overrides[rid] = {**self.overrides.get(rid, {}), **patch}
        self.pinned[rid] = {**_as_dict(record), **patch}
        self.pin_until[rid] = helper_date
        return patch

    def confirm(
        self,
        record,
        result: str,
        action: Callable[[int, str], object],
        today: Optional[date] = None,
    ):
        """Apply the outcome locally, then call ``action(record_id, result)``.

        If the action raises, local state for the record is put back the
        way it was and the exception propagates to the caller.
        """
        if result not in PD_RESULTS:
            raise ValueError(f"result must be one of: {', '.join(PD_RESULTS)}")

        rid = attr(record, "id")
        snapshot = (
            self.overrides.get(rid),
            self.pinned.get(rid),
            self.pin_until.get(rid),
        )

        if result == "Pregnant":
            self.mark_pregnant(record, today)
        else:
            self.mark_empty(record, today)

        try:
            return action(rid, result)
        except Exception:
            logger.warning("PD result for breeding record %s failed; reverting local state", rid)
            self._restore(rid, snapshot)
            raise

    def _restore(self, rid: int, snapshot) -> None:
        override, pin, until = snapshot
        for mapping, value in ((self.overrides, override), (self.pinned, pin), (self.pin_until, until)):
            if value is None:
                mapping.pop(rid, None)
            else:
                mapping[rid] = value

    # -----------------------------
    # Reconciliation
    # -----------------------------
    def collect_pins(self, base: Iterable, today: Optional[date] = None) -> None:
        today = today or date.today()
        by_id = {attr(r, "id"): r for r in base}

        for rid in list(self.pinned):
            fresh = by_id.get(rid)
            caught_up = fresh is not None and keep_until(fresh) is not None
            until = self.pin_until.get(rid) or keep_until(self.pinned[rid])
            expired = until is not None and until < today
            if caught_up or expired:
                self.pinned.pop(rid, None)
                self.pin_until.pop(rid, None)

        for rid in list(self.overrides):
            fresh = by_id.get(rid)
            if fresh is None:
                if rid not in self.pinned:
                    del self.overrides[rid]
            elif attr(fresh, "pd_result") == self.overrides[rid].get("pd_result"):
                del self.overrides[rid]

    def rows(
        self,
        base: Iterable,
        treated_ids: Iterable[int] = (),
        today: Optional[date] = None,
    ) -> list[dict]:
        today = today or date.today()
        base = [_as_dict(r) for r in base]
        treated = set(treated_ids)

        self.collect_pins(base, today)

        merged: dict[int, dict] = {}
        for row in base:
            rid = row["id"]
            merged[rid] = {**row, **self.overrides.get(rid, {})}
        for rid, pin in self.pinned.items():
            if rid not in merged:
                merged[rid] = {**pin, **self.overrides.get(rid, {})}

        visible = [
            row
            for rid, row in merged.items()
            if is_visible(row, rid in treated or bool(row.get("treated")), today)
        ]
        return sorted(visible, key=lambda r: as_date(r.get("breeding_date")) or date.min, reverse=True)
