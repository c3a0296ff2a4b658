from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, Integer, String, Date, DateTime, Float, Text, ForeignKey
from sqlalchemy.orm import relationship

from .database import Base


def _now() -> datetime:
    return datetime.now()


class Animal(Base):
    __tablename__ = "animals"

    id = Column(Integer, primary_key=True, index=True)
    ear_tag = Column(String, unique=True, nullable=False)
    name = Column(String)
    breed = Column(String)
    birth_date = Column(Date)
    sex = Column(String)  # Male/Female
    dam_id = Column(Integer, ForeignKey("animals.id"), nullable=True)
    sire_id = Column(Integer, ForeignKey("animals.id"), nullable=True)

    # Legacy coarse status, still written alongside pregnancy/milking status
    status = Column(String, nullable=False, default="Active")
    pregnancy_status = Column(String)  # Open/Empty/Waiting for PD/Pregnant
    milking_status = Column(String)  # Milking/Dry

    expected_calving_date = Column(Date)
    reopen_date = Column(Date)
    notes = Column(Text)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    breeding_records = relationship(
        "BreedingRecord",
        back_populates="animal",
        cascade="all, delete-orphan",
        order_by="BreedingRecord.breeding_date.desc()",
    )
    calvings = relationship(
        "Calving",
        back_populates="animal",
        cascade="all, delete-orphan",
        foreign_keys="Calving.animal_id",
        order_by="Calving.calving_date.desc()",
    )
    milking_records = relationship("MilkingRecord", cascade="all, delete-orphan")
    health_records = relationship("HealthRecord", cascade="all, delete-orphan")
    medicine_usages = relationship("MedicineUsage", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="animal", cascade="all, delete-orphan")


class BreedingRecord(Base):
    __tablename__ = "breeding_records"

    id = Column(Integer, primary_key=True, index=True)
    animal_id = Column(Integer, ForeignKey("animals.id"), nullable=False, index=True)
    breeding_date = Column(Date, nullable=False)
    sire_ear_tag = Column(String)
    breeding_method = Column(String)  # Natural/AI
    pd_result = Column(String, nullable=False, default="Unchecked")  # Pregnant/Empty/Unchecked
    pregnancy_check_date = Column(Date)

    heat_check_date = Column(Date)
    pregnancy_check_due_date = Column(Date)
    expected_calving_date = Column(Date)
    post_pd_treatment_due_date = Column(Date)
    keep_in_breeding_until = Column(Date)

    confirmed_pregnant = Column(Boolean, default=False)
    returned_to_heat = Column(Boolean, nullable=True)
    notes = Column(Text)
    created_at = Column(DateTime, default=_now)

    animal = relationship("Animal", back_populates="breeding_records")
    medicine_usages = relationship("MedicineUsage", back_populates="breeding_record")


class Calving(Base):
    __tablename__ = "calvings"

    id = Column(Integer, primary_key=True, index=True)
    animal_id = Column(Integer, ForeignKey("animals.id"), nullable=False, index=True)
    breeding_record_id = Column(Integer, ForeignKey("breeding_records.id"), nullable=True)
    calving_date = Column(Date, nullable=False)
    calf_ear_tag = Column(String)
    calf_sex = Column(String)
    birth_weight = Column(Float)
    complications = Column(Text)
    assistance_required = Column(Boolean, default=False)
    # Set when the calf was added to the herd as its own animal row
    calf_id = Column(Integer, ForeignKey("animals.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text)
    created_at = Column(DateTime, default=_now)

    animal = relationship("Animal", back_populates="calvings", foreign_keys=[animal_id])


class MilkingRecord(Base):
    __tablename__ = "milking_records"

    id = Column(Integer, primary_key=True, index=True)
    animal_id = Column(Integer, ForeignKey("animals.id"), nullable=False, index=True)
    milking_date = Column(Date, nullable=False)
    milk_yield = Column(Float, nullable=False)
    fat_percentage = Column(Float)
    protein_percentage = Column(Float)
    somatic_cell_count = Column(Integer)
    notes = Column(Text)


class HealthRecord(Base):
    __tablename__ = "health_records"

    id = Column(Integer, primary_key=True, index=True)
    animal_id = Column(Integer, ForeignKey("animals.id"), nullable=False, index=True)
    record_date = Column(Date, nullable=False)
    record_type = Column(String, nullable=False)
    description = Column(Text)
    treatment = Column(Text)
    veterinarian = Column(String)
    medication = Column(String)
    dose_ml = Column(Float)
    notes = Column(Text)
    created_at = Column(DateTime, default=_now)


class Medicine(Base):
    __tablename__ = "medicines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    stock_quantity = Column(Float, nullable=False)
    unit = Column(String, nullable=False)
    low_stock_threshold = Column(Float)
    expiration_date = Column(Date)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    usages = relationship("MedicineUsage", back_populates="medicine", cascade="all, delete-orphan")


class MedicineUsage(Base):
    __tablename__ = "medicine_usage_records"

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False)
    animal_id = Column(Integer, ForeignKey("animals.id"), nullable=False)
    breeding_record_id = Column(Integer, ForeignKey("breeding_records.id"), nullable=True, index=True)
    date_administered = Column(Date, nullable=False)
    quantity_used = Column(Float, nullable=False)
    reason = Column(Text)

    medicine = relationship("Medicine", back_populates="usages")
    breeding_record = relationship("BreedingRecord", back_populates="medicine_usages")


class Diesel(Base):
    __tablename__ = "diesel"

    id = Column(Integer, primary_key=True, index=True)
    event_date = Column(Date, nullable=False)
    volume_liters = Column(Float, nullable=False)
    type = Column(String, nullable=False)  # addition/consumption/correction
    reference = Column(String)
    recorded_by = Column(String)


class Feed(Base):
    __tablename__ = "feeds"

    id = Column(Integer, primary_key=True, index=True)
    event_date = Column(Date, nullable=False)
    # Signed: consumption is stored negative
    feeds = Column(Float, nullable=False)
    reference = Column(String)
    recorded_by = Column(String)


class EmailWhitelist(Base):
    __tablename__ = "email_whitelist"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_registered = Column(Boolean, nullable=False, default=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=_now)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    animal_id = Column(Integer, ForeignKey("animals.id"), nullable=True)
    title = Column(String, nullable=False)
    body = Column(Text)
    channel = Column(String, nullable=False, default="in_app")
    scheduled_for = Column(Date)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_now)

    animal = relationship("Animal", back_populates="notifications")
