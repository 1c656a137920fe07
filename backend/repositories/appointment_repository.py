"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from backend.models.appointment import Appointment, AppointmentStatus
from backend.models.user import Doctor, Patient


class AppointmentRepository:
    """Repository for appointment database operations"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Appointment).options(
            joinedload(Appointment.doctor).joinedload(Doctor.user),
            joinedload(Appointment.patient).joinedload(Patient.user),
            joinedload(Appointment.clinic),
        )

    def get(self, appointment_id: int, for_update: bool = False) -> Optional[Appointment]:
        if for_update:
            # Row lock only; relationships load lazily afterwards.
            return (
                self.db.query(Appointment)
                .filter(Appointment.id == appointment_id)
                .with_for_update()
                .first()
            )
        return self._query().filter(Appointment.id == appointment_id).first()

    def find_active_for_doctor_at(self, doctor_id: int, date_time: datetime) -> Optional[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date_time == date_time,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ).first()

    def find_active_for_patient_at(self, patient_id: int, date_time: datetime) -> Optional[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
            Appointment.date_time == date_time,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ).first()

    def list_active_for_doctor_between(
        self,
        doctor_id: int,
        range_start: datetime,
        range_end: datetime,
    ) -> list[Appointment]:
        """Non-cancelled appointments with range_start <= date_time < range_end"""
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date_time >= range_start,
            Appointment.date_time < range_end,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ).order_by(Appointment.date_time.asc()).all()

    def list_for_patient(
        self,
        patient_id: int,
        status: Optional[AppointmentStatus] = None,
        not_before: Optional[datetime] = None,
    ) -> list[Appointment]:
        query = self._query().filter(Appointment.patient_id == patient_id)
        if status is not None:
            query = query.filter(Appointment.status == status.value)
        if not_before is not None:
            query = query.filter(Appointment.date_time >= not_before)
        return query.order_by(Appointment.date_time.desc()).all()

    def list_for_doctor(
        self,
        doctor_id: int,
        status: Optional[AppointmentStatus] = None,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
        clinic_id: Optional[int] = None,
    ) -> list[Appointment]:
        query = self._query().filter(Appointment.doctor_id == doctor_id)
        if status is not None:
            query = query.filter(Appointment.status == status.value)
        if range_start is not None:
            query = query.filter(Appointment.date_time >= range_start)
        if range_end is not None:
            query = query.filter(Appointment.date_time < range_end)
        if clinic_id is not None:
            query = query.filter(Appointment.clinic_id == clinic_id)
        return query.order_by(Appointment.date_time.asc()).all()

    def add(self, appointment: Appointment) -> Appointment:
        """Stage and flush a new appointment; the caller owns the commit"""
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def count_upcoming_at_clinic(self, doctor_id: int, clinic_id: int, not_before: datetime) -> int:
        """Pending or confirmed appointments the doctor still has at the clinic"""
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.clinic_id == clinic_id,
            Appointment.date_time >= not_before,
            Appointment.status.in_([AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]),
        ).count()

    def count_for_clinic(self, clinic_id: int) -> int:
        return self.db.query(Appointment).filter(Appointment.clinic_id == clinic_id).count()
