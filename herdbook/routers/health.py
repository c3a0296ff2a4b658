from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/health-records", tags=["health"])


@router.get("/", response_model=list[schemas.HealthRecordOut])
def list_health_records(
    animal_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.HealthRecord)
    if animal_id is not None:
        q = q.filter(models.HealthRecord.animal_id == animal_id)
    return q.order_by(models.HealthRecord.record_date.desc()).all()


@router.post("/", response_model=schemas.HealthRecordOut)
def create_health_record(payload: schemas.HealthRecordCreate, db: Session = Depends(get_db)):
    if not db.get(models.Animal, payload.animal_id):
        raise HTTPException(404, "Animal not found")

    record = models.HealthRecord(**payload.model_dump())
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
