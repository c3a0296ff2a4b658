from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/milking", tags=["milking"])


@router.get("/", response_model=list[schemas.MilkingOut])
def list_milking_records(
    animal_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.MilkingRecord)
    if animal_id is not None:
        q = q.filter(models.MilkingRecord.animal_id == animal_id)
    return q.order_by(models.MilkingRecord.milking_date.desc()).all()


@router.post("/", response_model=schemas.MilkingOut)
def add_milking_record(payload: schemas.MilkingCreate, db: Session = Depends(get_db)):
    animal = db.get(models.Animal, payload.animal_id)
    if not animal:
        raise HTTPException(404, "Animal not found")
    if animal.sex != "Female":
        raise HTTPException(400, "Only females can have milking records")

    record = models.MilkingRecord(**payload.model_dump())
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@router.patch("/{record_id}", response_model=schemas.MilkingOut)
def update_milking_record(record_id: int, payload: schemas.MilkingUpdate, db: Session = Depends(get_db)):
    record = db.get(models.MilkingRecord, record_id)
    if not record:
        raise HTTPException(404, "Milking record not found")

    for key, value in payload.model_dump(exclude_unset=True).items():
        if key == "milk_yield" and value is None:
            raise HTTPException(400, "Milk yield must be provided")
        setattr(record, key, value)

    db.commit()
    db.refresh(record)
    return record


@router.delete("/{record_id}", status_code=204)
def delete_milking_record(record_id: int, db: Session = Depends(get_db)):
    record = db.get(models.MilkingRecord, record_id)
    if not record:
        raise HTTPException(404, "Milking record not found")
    db.delete(record)
    db.commit()
