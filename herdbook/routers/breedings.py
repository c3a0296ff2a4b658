from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..database import get_db
from ..history import is_visible, needs_early_confirmation
from ..lifecycle import (
    GESTATION_DAYS,
    POST_PD_TREATMENT_DAYS,
    REOPEN_DAYS,
    add_days,
    compute_breeding_dates,
)
from ..queues import build_action_queues
from ..status import TERMINAL_STATUSES
from .. import models, schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/breedings", tags=["breedings"])


def schedule_notification(
    db: Session,
    *,
    animal_id: int,
    title: str,
    body: str,
    scheduled_for: date,
) -> None:
    """Best-effort reminder insert; a failure here never fails the caller."""
    try:
        with db.begin_nested():
            db.add(
                models.Notification(
                    animal_id=animal_id,
                    title=title,
                    body=body,
                    scheduled_for=scheduled_for,
                )
            )
    except SQLAlchemyError:
        logger.warning("Could not create notification %r for animal %s", title, animal_id, exc_info=True)


def _breeding_animals(db: Session):
    return (
        db.query(models.Animal)
        .options(selectinload(models.Animal.breeding_records))
        .filter(models.Animal.sex == "Female")
        .filter(models.Animal.status.notin_(TERMINAL_STATUSES))
        .order_by(models.Animal.ear_tag.asc())
        .all()
    )


@router.post("/", response_model=schemas.BreedingOut)
def create_breeding(payload: schemas.BreedingCreate, db: Session = Depends(get_db)):
    dam = db.get(models.Animal, payload.animal_id)
    if not dam or dam.sex != "Female":
        raise HTTPException(400, "Invalid dam")
    if dam.status in TERMINAL_STATUSES:
        raise HTTPException(400, f"Cannot breed an animal with status '{dam.status}'")

    sire_ear_tag = (payload.sire_ear_tag or "").strip() or None
    if sire_ear_tag:
        sire = db.query(models.Animal).filter(models.Animal.ear_tag == sire_ear_tag).first()
        if not sire or sire.sex != "Male":
            raise HTTPException(400, "Invalid sire")

    dates = compute_breeding_dates(payload.breeding_date)

    breeding = models.BreedingRecord(
        animal_id=dam.id,
        breeding_date=dates.breeding_date,
        sire_ear_tag=sire_ear_tag,
        breeding_method=payload.breeding_method,
        notes=payload.notes,
        pd_result="Unchecked",
        confirmed_pregnant=False,
        heat_check_date=dates.heat_check_date,
        pregnancy_check_due_date=dates.pregnancy_check_due_date,
        expected_calving_date=dates.expected_calving_date,
    )
    dam.pregnancy_status = "Waiting for PD"

    try:
        db.add(breeding)
        db.flush()
        schedule_notification(
            db,
            animal_id=dam.id,
            title="PD check due",
            body=f"Pregnancy diagnosis for {dam.ear_tag} is due on {dates.pregnancy_check_due_date}.",
            scheduled_for=dates.pregnancy_check_due_date,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating breeding record for animal %s", dam.id)
        raise HTTPException(500, "Failed to create the breeding record.")

    db.refresh(breeding)
    logger.info("Recorded breeding %s for %s on %s", breeding.id, dam.ear_tag, breeding.breeding_date)
    return breeding


@router.get("/", response_model=list[schemas.BreedingOut])
def list_breedings(
    pd_result: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.BreedingRecord)
    if pd_result:
        q = q.filter(models.BreedingRecord.pd_result == pd_result)
    return q.order_by(models.BreedingRecord.breeding_date.desc()).all()


@router.get("/actions", response_model=schemas.ActionQueues)
def breeding_actions(db: Session = Depends(get_db)):
    return build_action_queues(_breeding_animals(db), date.today())


@router.get("/history", response_model=list[schemas.BreedingHistoryRow])
def breeding_history(db: Session = Depends(get_db)):
    """
    Breeding records of animals still in the breeding program.

    "Empty" records drop out once their keep-until date has passed unless a
    post-PD treatment was recorded against them.
    """
    today = date.today()
    treated_ids = {
        rid
        for (rid,) in db.query(models.MedicineUsage.breeding_record_id)
        .filter(models.MedicineUsage.breeding_record_id.isnot(None))
        .distinct()
        .all()
    }

    rows = []
    for animal in _breeding_animals(db):
        for record in animal.breeding_records:
            treated = record.id in treated_ids
            if not is_visible(record, treated, today):
                continue
            row = schemas.BreedingHistoryRow.model_validate(record)
            row.dam_ear_tag = animal.ear_tag
            row.treated = treated
            rows.append(row)

    return sorted(rows, key=lambda r: r.breeding_date, reverse=True)


@router.get("/{breeding_id}", response_model=schemas.BreedingOut)
def get_breeding(breeding_id: int, db: Session = Depends(get_db)):
    breeding = db.get(models.BreedingRecord, breeding_id)
    if not breeding:
        raise HTTPException(404, "Breeding record not found")
    return breeding


@router.patch("/{breeding_id}/pd", response_model=schemas.BreedingOut)
def update_pd_result(
    breeding_id: int,
    payload: schemas.BreedingPDUpdate,
    db: Session = Depends(get_db),
):
    """
    Record the pregnancy diagnosis for a breeding.

    The breeding record and the dam are updated in one transaction.
    """
    breeding = db.get(models.BreedingRecord, breeding_id)
    if not breeding:
        raise HTTPException(404, "Breeding record not found")
    if breeding.pd_result != "Unchecked":
        raise HTTPException(409, f"Pregnancy diagnosis already recorded as {breeding.pd_result}")

    today = date.today()
    if needs_early_confirmation(breeding, today) and not payload.confirm_early:
        raise HTTPException(
            409,
            f"Pregnancy diagnosis is not due until {breeding.pregnancy_check_due_date}. "
            "Resend with confirm_early=true to record it now.",
        )

    animal = breeding.animal
    if animal is None:
        raise HTTPException(404, "Animal not found")
    if animal.status in TERMINAL_STATUSES or animal.pregnancy_status in TERMINAL_STATUSES:
        raise HTTPException(400, f"Cannot record a pregnancy diagnosis for an animal with status '{animal.status}'")

    breeding.pd_result = payload.result
    breeding.pregnancy_check_date = today

    try:
        if payload.result == "Pregnant":
            expected = add_days(breeding.breeding_date, GESTATION_DAYS)
            breeding.confirmed_pregnant = True
            breeding.expected_calving_date = expected
            breeding.post_pd_treatment_due_date = None
            breeding.keep_in_breeding_until = None

            animal.status = "Pregnant"
            animal.pregnancy_status = "Pregnant"
            animal.expected_calving_date = expected
            animal.reopen_date = None

            db.flush()
            schedule_notification(
                db,
                animal_id=animal.id,
                title="Expected calving soon",
                body=f"Expected calving for {animal.ear_tag} on {expected}.",
                scheduled_for=expected,
            )
        else:
            post_pd_due = add_days(today, POST_PD_TREATMENT_DAYS)
            breeding.confirmed_pregnant = False
            breeding.expected_calving_date = None
            breeding.post_pd_treatment_due_date = post_pd_due
            breeding.keep_in_breeding_until = post_pd_due

            animal.status = "Empty"
            animal.pregnancy_status = "Empty"
            animal.reopen_date = add_days(today, REOPEN_DAYS)
            animal.expected_calving_date = None

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating PD result for breeding record %s", breeding_id)
        raise HTTPException(500, "Failed to update pregnancy diagnosis result.")

    db.refresh(breeding)
    logger.info("Breeding %s marked %s", breeding.id, breeding.pd_result)
    return breeding


@router.patch("/{breeding_id}/heat", response_model=schemas.BreedingOut)
def update_heat_check(
    breeding_id: int,
    payload: schemas.BreedingHeatUpdate,
    db: Session = Depends(get_db),
):
    breeding = db.get(models.BreedingRecord, breeding_id)
    if not breeding:
        raise HTTPException(404, "Breeding record not found")

    breeding.returned_to_heat = payload.returned_to_heat
    if payload.notes is not None:
        breeding.notes = payload.notes

    db.commit()
    db.refresh(breeding)
    return breeding
