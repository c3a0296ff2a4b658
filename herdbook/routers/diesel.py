from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/diesel", tags=["diesel"])


def diesel_balance(entries) -> float:
    balance = 0.0
    for e in entries:
        if e.type == "addition":
            balance += e.volume_liters
        elif e.type == "consumption":
            balance -= e.volume_liters
        else:
            # corrections carry their own sign
            balance += e.volume_liters
    return balance


@router.get("/", response_model=list[schemas.DieselOut])
def list_diesel(db: Session = Depends(get_db)):
    return db.query(models.Diesel).order_by(models.Diesel.event_date.desc(), models.Diesel.id.desc()).all()


@router.post("/", response_model=schemas.DieselOut)
def add_diesel(payload: schemas.DieselCreate, db: Session = Depends(get_db)):
    entry = models.Diesel(**payload.model_dump())
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/balance", response_model=schemas.LedgerBalance)
def get_diesel_balance(db: Session = Depends(get_db)):
    entries = db.query(models.Diesel).all()
    return {"balance": round(diesel_balance(entries), 2), "entries": len(entries)}
