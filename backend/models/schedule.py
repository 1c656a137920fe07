"""Recurring weekly schedule window definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from backend.database import Base


class DoctorSchedule(Base):
    """A weekly window during which a doctor sees patients at one clinic."""
    __tablename__ = "doctor_schedules"
    __table_args__ = (
        Index("idx_doctor_schedules_doctor_day", "doctor_id", "day_of_week", "is_active"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    doctor_clinic_id = Column(Integer, ForeignKey("doctor_clinics.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # Weekday value, Monday is 0
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    doctor_clinic = relationship("DoctorClinic", back_populates="schedules")
