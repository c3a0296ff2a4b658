from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..status import TERMINAL_STATUSES, animal_statuses
from .. import models, schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/animals", tags=["animals"])


def get_animal_or_404(db: Session, animal_id: int) -> models.Animal:
    animal = db.get(models.Animal, animal_id)
    if not animal:
        raise HTTPException(404, "Animal not found")
    return animal


def _check_parents(db: Session, dam_id: int | None, sire_id: int | None) -> None:
    if dam_id is not None:
        dam = db.get(models.Animal, dam_id)
        if not dam or dam.sex != "Female":
            raise HTTPException(400, "Invalid dam")
    if sire_id is not None:
        sire = db.get(models.Animal, sire_id)
        if not sire or sire.sex != "Male":
            raise HTTPException(400, "Invalid sire")


@router.post("/", response_model=schemas.AnimalOut)
def create_animal(payload: schemas.AnimalCreate, db: Session = Depends(get_db)):
    # Animals leave the herd through an update, never enter it that way
    if payload.status in TERMINAL_STATUSES:
        raise HTTPException(400, f"Cannot create an animal with status '{payload.status}'")

    _check_parents(db, payload.dam_id, payload.sire_id)

    animal = models.Animal(**payload.model_dump())
    db.add(animal)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, f"An animal with ear tag {payload.ear_tag} already exists")
    db.refresh(animal)
    logger.info("Created animal %s (%s)", animal.id, animal.ear_tag)
    return animal


@router.get("/", response_model=list[schemas.AnimalOut])
def list_animals(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=200, ge=1, le=1000),
    status: str | None = Query(default=None),
    sex: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.Animal)
    if status:
        q = q.filter(models.Animal.status == status)
    if sex:
        q = q.filter(models.Animal.sex == sex)
    return q.order_by(models.Animal.ear_tag.asc()).offset(skip).limit(limit).all()


@router.get("/by-tag/{ear_tag}", response_model=schemas.AnimalOut)
def get_animal_by_ear_tag(ear_tag: str, db: Session = Depends(get_db)):
    animal = db.query(models.Animal).filter(models.Animal.ear_tag == ear_tag).first()
    if not animal:
        raise HTTPException(404, "Animal not found")
    return animal


@router.get("/{animal_id}", response_model=schemas.AnimalOut)
def get_animal(animal_id: int, db: Session = Depends(get_db)):
    return get_animal_or_404(db, animal_id)


@router.get("/{animal_id}/status", response_model=schemas.AnimalStatusOut)
def get_animal_status(animal_id: int, db: Session = Depends(get_db)):
    animal = get_animal_or_404(db, animal_id)
    return {"animal_id": animal.id, "ear_tag": animal.ear_tag, **animal_statuses(animal)}


@router.get("/{animal_id}/breedings", response_model=list[schemas.BreedingOut])
def list_animal_breedings(animal_id: int, db: Session = Depends(get_db)):
    return get_animal_or_404(db, animal_id).breeding_records


@router.get("/{animal_id}/calvings", response_model=list[schemas.CalvingOut])
def list_animal_calvings(animal_id: int, db: Session = Depends(get_db)):
    return get_animal_or_404(db, animal_id).calvings


@router.patch("/{animal_id}", response_model=schemas.AnimalOut)
def update_animal(
    animal_id: int,
    payload: schemas.AnimalUpdate,
    db: Session = Depends(get_db),
):
    animal = get_animal_or_404(db, animal_id)

    # Only update fields that were actually provided
    changes = payload.model_dump(exclude_unset=True)
    if animal_id in (changes.get("dam_id"), changes.get("sire_id")):
        raise HTTPException(400, "An animal cannot be its own parent")
    _check_parents(db, changes.get("dam_id"), changes.get("sire_id"))

    for key, value in changes.items():
        setattr(animal, key, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, f"An animal with ear tag {payload.ear_tag} already exists")
    db.refresh(animal)
    return animal


@router.delete("/{animal_id}", status_code=204)
def delete_animal(animal_id: int, db: Session = Depends(get_db)):
    """
    Hard-delete an animal record.

    Breeding records, calvings, milking, health and medicine usage rows for
    the animal go with it. Offspring keep their row; their dam/sire link is
    cleared.
    """
    animal = get_animal_or_404(db, animal_id)

    offspring = (
        db.query(models.Animal)
        .filter((models.Animal.dam_id == animal_id) | (models.Animal.sire_id == animal_id))
        .all()
    )
    for child in offspring:
        if child.dam_id == animal_id:
            child.dam_id = None
        if child.sire_id == animal_id:
            child.sire_id = None

    db.query(models.Calving).filter(models.Calving.calf_id == animal_id).update({"calf_id": None})

    db.delete(animal)
    db.commit()
    logger.info("Deleted animal %s", animal_id)
