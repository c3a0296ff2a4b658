from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/feed", tags=["feed"])


def _feed_out(entry: models.Feed) -> schemas.FeedOut:
    return schemas.FeedOut(
        id=entry.id,
        event_date=entry.event_date,
        feeds=abs(entry.feeds),
        type="consumption" if entry.feeds < 0 else "addition",
        reference=entry.reference,
        recorded_by=entry.recorded_by,
    )


@router.get("/", response_model=list[schemas.FeedOut])
def list_feed(db: Session = Depends(get_db)):
    entries = db.query(models.Feed).order_by(models.Feed.event_date.desc(), models.Feed.id.desc()).all()
    return [_feed_out(e) for e in entries]


@router.post("/", response_model=schemas.FeedOut)
def add_feed(payload: schemas.FeedCreate, db: Session = Depends(get_db)):
    quantity = abs(payload.feeds)
    entry = models.Feed(
        event_date=payload.event_date,
        feeds=-quantity if payload.type == "consumption" else quantity,
        reference=payload.reference,
        recorded_by=payload.recorded_by,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return _feed_out(entry)


@router.get("/balance", response_model=schemas.LedgerBalance)
def get_feed_balance(db: Session = Depends(get_db)):
    total, count = db.query(func.coalesce(func.sum(models.Feed.feeds), 0.0), func.count(models.Feed.id)).one()
    return {"balance": round(float(total), 2), "entries": count}
