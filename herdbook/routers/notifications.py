from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _out(n: models.Notification) -> schemas.NotificationOut:
    out = schemas.NotificationOut.model_validate(n)
    if n.animal is not None:
        out.ear_tag = n.animal.ear_tag
    return out


@router.get("/", response_model=list[schemas.NotificationOut])
def list_notifications(unread_only: bool = False, db: Session = Depends(get_db)):
    q = (
        db.query(models.Notification)
        .options(joinedload(models.Notification.animal))
        .filter(models.Notification.channel == "in_app")
    )
    if unread_only:
        q = q.filter(models.Notification.read.is_(False))
    rows = q.order_by(models.Notification.scheduled_for.desc(), models.Notification.id.desc()).limit(100).all()
    return [_out(n) for n in rows]


@router.patch("/{notification_id}", response_model=schemas.NotificationOut)
def update_notification(
    notification_id: int,
    payload: schemas.NotificationUpdate,
    db: Session = Depends(get_db),
):
    n = db.get(models.Notification, notification_id)
    if not n:
        raise HTTPException(404, "Notification not found")
    n.read = payload.read
    db.commit()
    db.refresh(n)
    return _out(n)


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db)):
    updated = (
        db.query(models.Notification)
        .filter(models.Notification.channel == "in_app")
        .filter(models.Notification.read.is_(False))
        .update({"read": True}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}
