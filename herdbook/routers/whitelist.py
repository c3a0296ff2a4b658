from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whitelist", tags=["whitelist"])


def _normalize(email: str) -> str:
    return email.strip().lower()


def _get_entry(db: Session, email: str) -> models.EmailWhitelist | None:
    return db.query(models.EmailWhitelist).filter(models.EmailWhitelist.email == _normalize(email)).first()


@router.post("/check", response_model=schemas.WhitelistCheck)
def check_email(payload: schemas.WhitelistEmailIn, db: Session = Depends(get_db)):
    """Whether an email may sign up: listed, active and not registered yet."""
    entry = _get_entry(db, payload.email)
    if not entry or not entry.is_active:
        return {
            "is_whitelisted": False,
            "message": "This email is not authorized. Please contact your administrator to be added to the whitelist.",
        }
    if entry.is_registered:
        return {
            "is_whitelisted": False,
            "message": "An account with this email already exists. Please use the login page.",
        }
    return {"is_whitelisted": True, "message": "Email is authorized for registration"}


@router.get("/", response_model=list[schemas.WhitelistOut])
def list_whitelist(db: Session = Depends(get_db)):
    return db.query(models.EmailWhitelist).order_by(models.EmailWhitelist.created_at.desc()).all()


@router.post("/", response_model=schemas.WhitelistOut)
def add_email(payload: schemas.WhitelistCreate, db: Session = Depends(get_db)):
    entry = models.EmailWhitelist(email=payload.email, notes=payload.notes)
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "This email is already in the whitelist.")
    db.refresh(entry)
    logger.info("Whitelisted %s", entry.email)
    return entry


@router.post("/mark-registered", response_model=schemas.WhitelistOut)
def mark_registered(payload: schemas.WhitelistEmailIn, db: Session = Depends(get_db)):
    entry = _get_entry(db, payload.email)
    if not entry:
        raise HTTPException(404, "Email not found in whitelist")
    entry.is_registered = True
    db.commit()
    db.refresh(entry)
    return entry


@router.post("/deactivate", response_model=schemas.WhitelistOut)
def deactivate_email(payload: schemas.WhitelistEmailIn, db: Session = Depends(get_db)):
    entry = _get_entry(db, payload.email)
    if not entry:
        raise HTTPException(404, "Email not found in whitelist")
    entry.is_active = False
    db.commit()
    db.refresh(entry)
    logger.info("Deactivated %s", entry.email)
    return entry


@router.delete("/{email}", status_code=204)
def delete_email(email: str, db: Session = Depends(get_db)):
    entry = _get_entry(db, email)
    if not entry:
        raise HTTPException(404, "Email not found in whitelist")
    removed = entry.email
    db.delete(entry)
    db.commit()
    logger.info("Removed %s from whitelist", removed)
