"""Appointment model definitions."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from backend.database import ACTIVE_APPOINTMENT_CLAUSE, Base
from backend.models.types import UTCDateTime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Appointment(Base):
    """Represents a scheduled appointment."""
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one non-cancelled appointment per doctor and per patient at an instant.
        Index(
            "uq_appointments_doctor_active_slot",
            "doctor_id",
            "date_time",
            unique=True,
            postgresql_where=text(ACTIVE_APPOINTMENT_CLAUSE),
            sqlite_where=text(ACTIVE_APPOINTMENT_CLAUSE),
        ),
        Index(
            "uq_appointments_patient_active_slot",
            "patient_id",
            "date_time",
            unique=True,
            postgresql_where=text(ACTIVE_APPOINTMENT_CLAUSE),
            sqlite_where=text(ACTIVE_APPOINTMENT_CLAUSE),
        ),
        Index("idx_appointments_doctor_status", "doctor_id", "status"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    clinic_id = Column(Integer, ForeignKey("clinics.id"))
    date_time = Column(UTCDateTime, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    notes = Column(Text)
    created_at = Column(UTCDateTime, default=_utc_now)
    updated_at = Column(UTCDateTime, default=_utc_now, onupdate=_utc_now)

    patient = relationship("Patient")
    doctor = relationship("Doctor")
    clinic = relationship("Clinic")
