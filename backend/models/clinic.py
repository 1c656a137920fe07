"""Clinic and clinic assignment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.types import UTCDateTime


class Clinic(Base):
    """Represents a physical clinic location."""
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String)
    city = Column(String)
    area = Column(String)
    phone = Column(String)


class DoctorClinic(Base):
    """Links a doctor to a clinic where they consult."""
    __tablename__ = "doctor_clinics"
    __table_args__ = (
        UniqueConstraint("doctor_id", "clinic_id", name="uq_doctor_clinics_doctor_clinic"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False)
    consultation_fee = Column(Numeric(10, 2))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    doctor = relationship("Doctor", back_populates="clinic_assignments")
    clinic = relationship("Clinic")
    schedules = relationship("DoctorSchedule", back_populates="doctor_clinic")
