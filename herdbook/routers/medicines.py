from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..lifecycle import REOPEN_DAYS, add_days
from .. import models, schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/medicines", tags=["medicines"])

DEFAULT_LOW_STOCK = 10


def is_low_stock(medicine: models.Medicine) -> bool:
    threshold = medicine.low_stock_threshold
    if threshold is None:
        threshold = DEFAULT_LOW_STOCK
    return medicine.stock_quantity < threshold


def get_medicine_or_404(db: Session, medicine_id: int) -> models.Medicine:
    medicine = db.get(models.Medicine, medicine_id)
    if not medicine:
        raise HTTPException(404, "Medicine not found")
    return medicine


@router.get("/", response_model=list[schemas.MedicineOut])
def list_medicines(db: Session = Depends(get_db)):
    # Soonest to expire first; undated stock last
    return (
        db.query(models.Medicine)
        .order_by(models.Medicine.expiration_date.is_(None), models.Medicine.expiration_date.asc())
        .all()
    )


@router.get("/low-stock", response_model=list[schemas.MedicineOut])
def low_stock_medicines(db: Session = Depends(get_db)):
    return [m for m in list_medicines(db) if is_low_stock(m)]


@router.post("/", response_model=schemas.MedicineOut)
def add_medicine(payload: schemas.MedicineCreate, db: Session = Depends(get_db)):
    medicine = models.Medicine(**payload.model_dump())
    db.add(medicine)
    db.commit()
    db.refresh(medicine)
    logger.info("Added medicine %s (%s %s)", medicine.name, medicine.stock_quantity, medicine.unit)
    return medicine


@router.patch("/{medicine_id}", response_model=schemas.MedicineOut)
def update_medicine(medicine_id: int, payload: schemas.MedicineUpdate, db: Session = Depends(get_db)):
    medicine = get_medicine_or_404(db, medicine_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(medicine, key, value)
    db.commit()
    db.refresh(medicine)
    return medicine


@router.delete("/{medicine_id}", status_code=204)
def delete_medicine(medicine_id: int, db: Session = Depends(get_db)):
    medicine = get_medicine_or_404(db, medicine_id)
    db.delete(medicine)
    db.commit()


@router.get("/usage", response_model=list[schemas.MedicineUsageOut])
def list_usage(animal_id: int | None = None, db: Session = Depends(get_db)):
    q = db.query(models.MedicineUsage)
    if animal_id is not None:
        q = q.filter(models.MedicineUsage.animal_id == animal_id)
    return q.order_by(models.MedicineUsage.date_administered.desc()).all()


@router.post("/usage", response_model=schemas.MedicineUsageOut)
def record_usage(payload: schemas.MedicineUsageCreate, db: Session = Depends(get_db)):
    """
    Log a dose given to an animal and take it out of stock.

    When the dose is a post-PD treatment (linked to a breeding record) an
    "Empty" dam moves back to "Open" and the record stays in the breeding
    history until the dam's reopen date.
    """
    today = date.today()
    medicine = db.get(models.Medicine, payload.medicine_id)
    if not medicine:
        raise HTTPException(404, "Could not find the selected medicine to record usage.")

    if medicine.expiration_date and medicine.expiration_date < today:
        raise HTTPException(
            400,
            f"Cannot use expired medicine. {medicine.name} expired on "
            f"{medicine.expiration_date:%m/%d/%Y}.",
        )
    if payload.quantity_used > medicine.stock_quantity:
        raise HTTPException(
            400,
            f"Only {medicine.stock_quantity:g} {medicine.unit} of {medicine.name} left in stock",
        )

    animal = db.get(models.Animal, payload.animal_id)
    if not animal:
        raise HTTPException(404, "Animal not found")

    breeding = None
    if payload.breeding_record_id is not None:
        breeding = db.get(models.BreedingRecord, payload.breeding_record_id)
        if not breeding or breeding.animal_id != animal.id:
            raise HTTPException(404, "Breeding record not found for this animal")

    usage = models.MedicineUsage(**payload.model_dump())
    db.add(usage)
    medicine.stock_quantity = medicine.stock_quantity - payload.quantity_used

    if breeding is not None:
        if animal.status == "Empty":
            animal.status = "Open"
        if animal.pregnancy_status == "Empty":
            animal.pregnancy_status = "Open"
        breeding.keep_in_breeding_until = animal.reopen_date or add_days(today, REOPEN_DAYS)

    db.commit()
    db.refresh(usage)
    logger.info(
        "Used %s %s of %s on %s", payload.quantity_used, medicine.unit, medicine.name, animal.ear_tag
    )
    return usage
