"""Schedule repository - Database operations for weekly schedule windows"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from backend.core.calendar import Weekday
from backend.models.clinic import DoctorClinic
from backend.models.schedule import DoctorSchedule


class ScheduleRepository:
    """Repository for doctor schedule windows"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(DoctorSchedule).options(
            joinedload(DoctorSchedule.doctor_clinic).joinedload(DoctorClinic.clinic)
        )

    def list_active_windows(
        self,
        doctor_id: int,
        weekday: Weekday,
        clinic_id: Optional[int] = None,
    ) -> list[DoctorSchedule]:
        """Active windows for one weekday, optionally limited to one clinic"""
        query = self._query().filter(
            DoctorSchedule.doctor_id == doctor_id,
            DoctorSchedule.day_of_week == int(weekday),
            DoctorSchedule.is_active.is_(True),
        )
        if clinic_id is not None:
            query = query.join(DoctorSchedule.doctor_clinic).filter(DoctorClinic.clinic_id == clinic_id)
        return query.order_by(DoctorSchedule.start_time.asc(), DoctorSchedule.id.asc()).all()

    def list_for_doctor(
        self,
        doctor_id: int,
        clinic_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> list[DoctorSchedule]:
        query = self._query().filter(DoctorSchedule.doctor_id == doctor_id)
        if clinic_id is not None:
            query = query.join(DoctorSchedule.doctor_clinic).filter(DoctorClinic.clinic_id == clinic_id)
        if is_active is not None:
            query = query.filter(DoctorSchedule.is_active.is_(is_active))
        return query.order_by(DoctorSchedule.day_of_week.asc(), DoctorSchedule.start_time.asc()).all()

    def get(self, schedule_id: int) -> Optional[DoctorSchedule]:
        return self._query().filter(DoctorSchedule.id == schedule_id).first()

    def add_all(self, schedules: list[DoctorSchedule]) -> list[DoctorSchedule]:
        """Insert windows in a single commit so a batch lands all-or-nothing"""
        self.db.add_all(schedules)
        self.db.commit()
        for schedule in schedules:
            self.db.refresh(schedule)
        return schedules

    def update(self, schedule: DoctorSchedule, **updates) -> DoctorSchedule:
        for key, value in updates.items():
            if value is not None and hasattr(schedule, key):
                setattr(schedule, key, value)
        self.db.commit()
        self.db.refresh(schedule)
        return schedule

    def delete(self, schedule: DoctorSchedule) -> None:
        self.db.delete(schedule)
        self.db.commit()

    def count_active_for_assignment(self, doctor_clinic_id: int) -> int:
        return self.db.query(DoctorSchedule).filter(
            DoctorSchedule.doctor_clinic_id == doctor_clinic_id,
            DoctorSchedule.is_active.is_(True),
        ).count()
