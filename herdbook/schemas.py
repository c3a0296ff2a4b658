from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

Sex = Literal["Male", "Female"]
LegacyStatus = Literal["Active", "Sold", "Deceased", "Culled", "Pregnant", "Fresh", "Open", "Empty", "Dry"]
PregnancyStatus = Literal["Open", "Empty", "Waiting for PD", "Pregnant"]
MilkingStatus = Literal["Milking", "Dry"]
BreedingMethod = Literal["Natural", "AI"]
PDResult = Literal["Pregnant", "Empty"]

EAR_TAG_RE = re.compile(r"^[A-Za-z0-9]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# -----------------------------
# Animals
# -----------------------------

class AnimalCreate(BaseModel):
    ear_tag: str
    name: Optional[str] = None
    breed: Optional[str] = None
    birth_date: Optional[date] = None
    sex: Optional[Sex] = None
    dam_id: Optional[int] = None
    sire_id: Optional[int] = None
    status: LegacyStatus = "Active"
    pregnancy_status: Optional[PregnancyStatus] = None
    milking_status: Optional[MilkingStatus] = None
    notes: Optional[str] = None

    @field_validator("ear_tag")
    @classmethod
    def validate_ear_tag(cls, value: str) -> str:
        value = value.strip()
        if not EAR_TAG_RE.match(value):
            raise ValueError("ear_tag must be letters and digits only")
        return value


class AnimalUpdate(BaseModel):
    ear_tag: Optional[str] = None
    name: Optional[str] = None
    breed: Optional[str] = None
    birth_date: Optional[date] = None
    sex: Optional[Sex] = None
    dam_id: Optional[int] = None
    sire_id: Optional[int] = None
    status: Optional[LegacyStatus] = None
    pregnancy_status: Optional[PregnancyStatus] = None
    milking_status: Optional[MilkingStatus] = None
    notes: Optional[str] = None

    @field_validator("ear_tag")
    @classmethod
    def validate_ear_tag(cls, value: Optional[str]) -> str:
        # Only runs when ear_tag was sent; an explicit null is not a tag
        if value is None:
            raise ValueError("ear_tag cannot be null")
        value = value.strip()
        if not EAR_TAG_RE.match(value):
            raise ValueError("ear_tag must be letters and digits only")
        return value


class AnimalOut(BaseModel):
    id: int
    ear_tag: str
    name: Optional[str] = None
    breed: Optional[str] = None
    birth_date: Optional[date] = None
    sex: Optional[str] = None
    dam_id: Optional[int] = None
    sire_id: Optional[int] = None
    status: str
    pregnancy_status: Optional[str] = None
    milking_status: Optional[str] = None
    expected_calving_date: Optional[date] = None
    reopen_date: Optional[date] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class StatusInfoOut(BaseModel):
    label: str
    variant: str
    priority: int = 0
    details: Optional[str] = None


class ReproStatusOut(BaseModel):
    label: str
    variant: str
    expected_calving_date: Optional[date] = None
    days_until_due: Optional[int] = None
    heat_check_date: Optional[date] = None
    days_since_last_calving: Optional[int] = None
    details: dict[str, Any] = {}


class AnimalStatusOut(BaseModel):
    animal_id: int
    ear_tag: str
    combined: StatusInfoOut
    repro: ReproStatusOut
    classification: StatusInfoOut
    milking: StatusInfoOut


# -----------------------------
# Breeding
# -----------------------------

class BreedingCreate(BaseModel):
    animal_id: int
    breeding_date: date
    sire_ear_tag: Optional[str] = None
    breeding_method: Optional[BreedingMethod] = None
    notes: Optional[str] = None


class BreedingPDUpdate(BaseModel):
    result: PDResult
    # PD checks confirmed before their due date need an explicit go-ahead
    confirm_early: bool = False


class BreedingHeatUpdate(BaseModel):
    returned_to_heat: bool
    notes: Optional[str] = None


class BreedingOut(BaseModel):
    id: int
    animal_id: int
    breeding_date: date
    sire_ear_tag: Optional[str] = None
    breeding_method: Optional[str] = None
    pd_result: str
    pregnancy_check_date: Optional[date] = None
    heat_check_date: Optional[date] = None
    pregnancy_check_due_date: Optional[date] = None
    expected_calving_date: Optional[date] = None
    post_pd_treatment_due_date: Optional[date] = None
    keep_in_breeding_until: Optional[date] = None
    confirmed_pregnant: Optional[bool] = None
    returned_to_heat: Optional[bool] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class BreedingHistoryRow(BreedingOut):
    dam_ear_tag: Optional[str] = None
    treated: bool = False


class ActionItem(BaseModel):
    animal_id: int
    ear_tag: str
    breeding_record_id: int
    breeding_date: date
    due_date: date
    days_overdue: int


class ActionQueues(BaseModel):
    as_of: date
    needs_pd_check: list[ActionItem]
    needs_heat_check: list[ActionItem]


# -----------------------------
# Calvings
# -----------------------------

class CalvingCreate(BaseModel):
    animal_id: int
    calving_date: date
    breeding_record_id: Optional[int] = None
    calf_ear_tag: Optional[str] = None
    calf_sex: Optional[Sex] = None
    birth_weight: Optional[float] = Field(default=None, ge=0)
    complications: Optional[str] = None
    assistance_required: bool = False
    notes: Optional[str] = None
    # Add the calf to the herd as its own animal
    create_calf: bool = False

    @model_validator(mode="after")
    def validate_calf(self):
        if self.create_calf and not self.calf_ear_tag:
            raise ValueError("calf_ear_tag is required to add the calf to the herd")
        if self.calf_ear_tag and not EAR_TAG_RE.match(self.calf_ear_tag.strip()):
            raise ValueError("calf_ear_tag must be letters and digits only")
        return self


class CalvingOut(BaseModel):
    id: int
    animal_id: int
    breeding_record_id: Optional[int] = None
    calving_date: date
    calf_ear_tag: Optional[str] = None
    calf_sex: Optional[str] = None
    birth_weight: Optional[float] = None
    complications: Optional[str] = None
    assistance_required: bool = False
    calf_id: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class CalvingStats(BaseModel):
    total_calvings_this_year: int
    calvings_last_30_days: int
    live_birth_rate: int
    male_calves: int
    female_calves: int


# -----------------------------
# Milking
# -----------------------------

class MilkingCreate(BaseModel):
    animal_id: int
    milking_date: date
    milk_yield: float = Field(ge=0)
    fat_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    protein_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    somatic_cell_count: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class MilkingUpdate(BaseModel):
    milking_date: Optional[date] = None
    milk_yield: Optional[float] = Field(default=None, ge=0)
    fat_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    protein_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    somatic_cell_count: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class MilkingOut(MilkingCreate):
    id: int

    class Config:
        from_attributes = True


# -----------------------------
# Health
# -----------------------------

class HealthRecordCreate(BaseModel):
    animal_id: int
    record_date: date
    record_type: str
    description: Optional[str] = None
    treatment: Optional[str] = None
    veterinarian: Optional[str] = None
    medication: Optional[str] = None
    dose_ml: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class HealthRecordOut(HealthRecordCreate):
    id: int

    class Config:
        from_attributes = True


# -----------------------------
# Medicines
# -----------------------------

class MedicineCreate(BaseModel):
    name: str = Field(min_length=1)
    stock_quantity: float = Field(gt=0)
    unit: str = Field(min_length=1)
    low_stock_threshold: Optional[float] = Field(default=None, ge=0)
    expiration_date: Optional[date] = None


class MedicineUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    stock_quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = Field(default=None, min_length=1)
    low_stock_threshold: Optional[float] = Field(default=None, ge=0)
    expiration_date: Optional[date] = None


class MedicineOut(BaseModel):
    id: int
    name: str
    stock_quantity: float
    unit: str
    low_stock_threshold: Optional[float] = None
    expiration_date: Optional[date] = None

    class Config:
        from_attributes = True


class MedicineUsageCreate(BaseModel):
    medicine_id: int
    animal_id: int
    breeding_record_id: Optional[int] = None
    date_administered: date
    quantity_used: float = Field(gt=0)
    reason: Optional[str] = None


class MedicineUsageOut(MedicineUsageCreate):
    id: int

    class Config:
        from_attributes = True


# -----------------------------
# Diesel & Feed
# -----------------------------

class DieselCreate(BaseModel):
    event_date: date
    volume_liters: float
    type: Literal["addition", "consumption", "correction"]
    reference: Optional[str] = None
    recorded_by: Optional[str] = None

    @model_validator(mode="after")
    def validate_volume(self):
        if self.type != "correction" and self.volume_liters < 0:
            raise ValueError("volume_liters must be positive for additions and consumption")
        return self


class DieselOut(DieselCreate):
    id: int

    class Config:
        from_attributes = True


class FeedCreate(BaseModel):
    event_date: date
    feeds: float
    type: Literal["addition", "consumption"]
    reference: Optional[str] = None
    recorded_by: Optional[str] = None


class FeedOut(BaseModel):
    id: int
    event_date: date
    feeds: float
    type: str
    reference: Optional[str] = None
    recorded_by: Optional[str] = None


class LedgerBalance(BaseModel):
    balance: float
    entries: int


# -----------------------------
# Email whitelist
# -----------------------------

class WhitelistCreate(BaseModel):
    email: str
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_RE.match(value):
            raise ValueError("Please enter a valid email address.")
        return value


class WhitelistEmailIn(BaseModel):
    email: str


class WhitelistOut(BaseModel):
    id: int
    email: str
    is_active: bool
    is_registered: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WhitelistCheck(BaseModel):
    is_whitelisted: bool
    message: str


# -----------------------------
# Notifications
# -----------------------------

class NotificationOut(BaseModel):
    id: int
    animal_id: Optional[int] = None
    ear_tag: Optional[str] = None
    title: str
    body: Optional[str] = None
    scheduled_for: Optional[date] = None
    read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationUpdate(BaseModel):
    read: bool = True


class OptionItem(BaseModel):
    id: int
    label: str
