from __future__ import annotations

# Run with:
#   python -m uvicorn herdbook.main:app --reload

import logging
from datetime import date, timedelta

from fastapi import APIRouter, FastAPI, Depends, Query
from sqlalchemy.orm import Session, selectinload

from .config import Settings, get_settings
from .database import Base, get_db, make_engine, make_session_factory
from .queues import needs_heat_check, needs_pd_check
from .status import TERMINAL_STATUSES
from .routers import animals, breedings, calvings, milking, health
from .routers import medicines as medicines_router
from .routers import diesel as diesel_router
from .routers import feed as feed_router
from .routers import whitelist as whitelist_router
from .routers import notifications as notifications_router
from .routers import reports as reports_router
from . import models, schemas

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

router = APIRouter()


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    # SQL echo only when debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if level <= logging.DEBUG else logging.WARNING)


# -----------------------------
# OPTION ENDPOINTS (for dropdowns)
# -----------------------------
@router.get("/options/dams", response_model=list[schemas.OptionItem])
def options_dams(db: Session = Depends(get_db)):
    dams = (
        db.query(models.Animal)
        .filter(models.Animal.sex == "Female")
        .filter(models.Animal.status.notin_(TERMINAL_STATUSES))
        .order_by(models.Animal.ear_tag.asc())
        .all()
    )
    return [
        schemas.OptionItem(id=a.id, label=f"{a.ear_tag}" + (f" ({a.name})" if a.name else ""))
        for a in dams
    ]


@router.get("/options/sires", response_model=list[schemas.OptionItem])
def options_sires(db: Session = Depends(get_db)):
    sires = (
        db.query(models.Animal)
        .filter(models.Animal.sex == "Male")
        .filter(models.Animal.status.notin_(TERMINAL_STATUSES))
        .order_by(models.Animal.ear_tag.asc())
        .all()
    )
    return [
        schemas.OptionItem(id=a.id, label=f"{a.ear_tag}" + (f" ({a.name})" if a.name else ""))
        for a in sires
    ]


@router.get("/options/animals", response_model=list[schemas.OptionItem])
def options_animals(
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.Animal)
    if status:
        q = q.filter(models.Animal.status == status)

    out: list[schemas.OptionItem] = []
    for a in q.order_by(models.Animal.ear_tag.asc()).all():
        label = f"{a.ear_tag} (ID {a.id}, {a.sex or 'Unknown'}, {a.status})"
        out.append(schemas.OptionItem(id=a.id, label=label))
    return out


# -----------------------------
# DASHBOARD TODO
# -----------------------------
@router.get("/dashboard/todo", response_model=dict)
def dashboard_todo(
    calving_window_days: int = Query(default=14, ge=1, le=120),
    expiry_window_days: int = Query(default=30, ge=1, le=365),
    limit: int = Query(default=25, ge=1, le=200),
    db: Session = Depends(get_db),
):
    today = date.today()

    herd = (
        db.query(models.Animal)
        .options(selectinload(models.Animal.breeding_records))
        .filter(models.Animal.sex == "Female")
        .filter(models.Animal.status.notin_(TERMINAL_STATUSES))
        .all()
    )

    # 1) PD and heat checks
    pd_checks = [
        {**item, "label": f"{item['ear_tag']} PD check due {item['due_date']}", "link": "/breedings/actions"}
        for item in needs_pd_check(herd, today)[:limit]
    ]
    heat_checks = [
        {**item, "label": f"{item['ear_tag']} heat check due {item['due_date']}", "link": "/breedings/actions"}
        for item in needs_heat_check(herd, today)[:limit]
    ]

    # 2) Calvings due soon
    end = today + timedelta(days=calving_window_days)
    calving_rows = (
        db.query(models.Animal)
        .filter(models.Animal.status.notin_(TERMINAL_STATUSES))
        .filter(models.Animal.expected_calving_date.isnot(None))
        .filter(models.Animal.expected_calving_date >= today)
        .filter(models.Animal.expected_calving_date <= end)
        .order_by(models.Animal.expected_calving_date.asc())
        .limit(limit)
        .all()
    )
    calvings_due = [
        {
            "animal_id": a.id,
            "ear_tag": a.ear_tag,
            "expected_calving_date": a.expected_calving_date,
            "days_until_due": (a.expected_calving_date - today).days,
            "label": f"{a.ear_tag} expected to calve {a.expected_calving_date}",
            "link": f"/animals/{a.id}",
        }
        for a in calving_rows
    ]

    # 3) Medicine stock
    medicines = db.query(models.Medicine).order_by(models.Medicine.name.asc()).all()
    low_stock = [
        {
            "medicine_id": m.id,
            "name": m.name,
            "stock_quantity": m.stock_quantity,
            "unit": m.unit,
            "label": f"{m.name}: {m.stock_quantity:g} {m.unit} left",
            "link": "/medicines/low-stock",
        }
        for m in medicines
        if medicines_router.is_low_stock(m)
    ][:limit]

    expiry_cutoff = today + timedelta(days=expiry_window_days)
    expiring = [
        {
            "medicine_id": m.id,
            "name": m.name,
            "expiration_date": m.expiration_date,
            "expired": m.expiration_date < today,
            "label": f"{m.name} expires {m.expiration_date}",
            "link": "/medicines",
        }
        for m in sorted(
            (m for m in medicines if m.expiration_date and m.expiration_date <= expiry_cutoff),
            key=lambda m: m.expiration_date,
        )
    ][:limit]

    return {
        "as_of": today,
        "params": {
            "calving_window_days": calving_window_days,
            "expiry_window_days": expiry_window_days,
            "limit": limit,
        },
        "pd_checks_due": pd_checks,
        "heat_checks_due": heat_checks,
        "calvings_due": calvings_due,
        "low_stock_medicines": low_stock,
        "expiring_medicines": expiring,
    }


@router.get("/")
def root():
    return {"status": "ok", "dashboard": "/dashboard/todo"}


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings.log_level)

    engine = make_engine(settings)
    Base.metadata.create_all(bind=engine)

    app = FastAPI(title=settings.app_title)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)

    # -----------------------------
    # API ROUTERS
    # -----------------------------
    app.include_router(animals.router)
    app.include_router(breedings.router)
    app.include_router(calvings.router)
    app.include_router(milking.router)
    app.include_router(health.router)
    app.include_router(medicines_router.router)
    app.include_router(diesel_router.router)
    app.include_router(feed_router.router)
    app.include_router(whitelist_router.router)
    app.include_router(notifications_router.router)
    app.include_router(reports_router.router)
    app.include_router(router)

    logger.info("%s started (%s) on %s", settings.app_title, settings.environment, engine.url.render_as_string(hide_password=True))
    return app


app = create_app()
