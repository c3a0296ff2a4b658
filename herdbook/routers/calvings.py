from __future__ import annotations

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calvings", tags=["calvings"])

STILLBORN = ("stillbirth", "aborted")


@router.get("/", response_model=list[schemas.CalvingOut])
def list_calvings(db: Session = Depends(get_db)):
    return db.query(models.Calving).order_by(models.Calving.calving_date.desc()).all()


def summarize_calvings(calvings, today: date) -> dict:
    thirty_days_ago = today - timedelta(days=30)

    this_year = [c for c in calvings if c.calving_date.year == today.year]
    live = [c for c in calvings if (c.complications or "").strip().lower() not in STILLBORN]

    return {
        "total_calvings_this_year": len(this_year),
        "calvings_last_30_days": sum(1 for c in calvings if c.calving_date >= thirty_days_ago),
        "live_birth_rate": round(len(live) / len(calvings) * 100) if calvings else 0,
        "male_calves": sum(1 for c in this_year if c.calf_sex == "Male"),
        "female_calves": sum(1 for c in this_year if c.calf_sex == "Female"),
    }


@router.get("/stats", response_model=schemas.CalvingStats)
def calving_stats(db: Session = Depends(get_db)):
    return summarize_calvings(db.query(models.Calving).all(), date.today())


def _pregnancy_record(db: Session, dam: models.Animal, breeding_record_id: int | None):
    if breeding_record_id is not None:
        record = db.get(models.BreedingRecord, breeding_record_id)
        if not record or record.animal_id != dam.id:
            raise HTTPException(404, "Breeding record not found for this dam")
        return record

    pregnant = [r for r in dam.breeding_records if r.pd_result == "Pregnant" or r.confirmed_pregnant]
    if not pregnant:
        return None
    return max(pregnant, key=lambda r: r.breeding_date)


@router.post("/", response_model=schemas.CalvingOut)
def create_calving(payload: schemas.CalvingCreate, db: Session = Depends(get_db)):
    dam = db.get(models.Animal, payload.animal_id)
    if not dam or dam.sex != "Female":
        raise HTTPException(400, "Invalid dam")

    record = _pregnancy_record(db, dam, payload.breeding_record_id)

    data = payload.model_dump(exclude={"create_calf", "breeding_record_id"})
    calving = models.Calving(**data, breeding_record_id=record.id if record else None)

    try:
        if payload.create_calf:
            sire = None
            if record is not None and record.sire_ear_tag:
                sire = (
                    db.query(models.Animal)
                    .filter(models.Animal.ear_tag == record.sire_ear_tag)
                    .first()
                )
            calf = models.Animal(
                ear_tag=payload.calf_ear_tag.strip(),
                sex=payload.calf_sex,
                birth_date=payload.calving_date,
                dam_id=dam.id,
                sire_id=sire.id if sire else None,
                status="Active",
                notes=f"Born to {dam.ear_tag} on {payload.calving_date}",
            )
            db.add(calf)
            db.flush()
            calving.calf_id = calf.id

        # The dam starts a new lactation
        dam.status = "Fresh"
        dam.pregnancy_status = "Empty"
        dam.milking_status = "Milking"
        dam.expected_calving_date = None

        db.add(calving)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, f"An animal with ear tag {payload.calf_ear_tag} already exists")

    db.refresh(calving)
    logger.info("Recorded calving %s for %s", calving.id, dam.ear_tag)
    return calving
