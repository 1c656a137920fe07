"""User and profile model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.types import UTCDateTime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    role = Column(String, nullable=False)  # PATIENT/DOCTOR/ADMIN
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=_utc_now)

    doctor = relationship("Doctor", back_populates="user", uselist=False)
    patient = relationship("Patient", back_populates="user", uselist=False)


class Doctor(Base):
    """Doctor profile attached to a DOCTOR user."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    years_of_experience = Column(Integer)
    bio = Column(Text)

    user = relationship("User", back_populates="doctor")
    clinic_assignments = relationship("DoctorClinic", back_populates="doctor")

    @property
    def display_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"


class Patient(Base):
    """Patient profile attached to a PATIENT user."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String)

    user = relationship("User", back_populates="patient")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
