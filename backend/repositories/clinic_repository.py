"""Clinic repository - Database operations for clinics and doctor assignments"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from backend.core.errors import Conflict
from backend.models.clinic import Clinic, DoctorClinic

ALREADY_ASSIGNED = 'You are already assigned to this clinic'


class ClinicRepository:
    """Repository for clinic and clinic assignment database operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_clinic(self, clinic_id: int) -> Optional[Clinic]:
        return self.db.query(Clinic).filter(Clinic.id == clinic_id).first()

    def list_clinics(self, city: Optional[str] = None) -> list[Clinic]:
        query = self.db.query(Clinic)
        if city:
            query = query.filter(Clinic.city == city)
        return query.order_by(Clinic.name.asc()).all()

    def create_clinic(self, **clinic_data) -> Clinic:
        clinic = Clinic(**clinic_data)
        self.db.add(clinic)
        self.db.commit()
        self.db.refresh(clinic)
        return clinic

    def update_clinic(self, clinic: Clinic, **updates) -> Clinic:
        """Apply only the fields that were supplied"""
        for key, value in updates.items():
            if value is not None and hasattr(clinic, key):
                setattr(clinic, key, value)
        self.db.commit()
        self.db.refresh(clinic)
        return clinic

    def delete_clinic(self, clinic: Clinic) -> None:
        self.db.delete(clinic)
        self.db.commit()

    def count_assignments(self, clinic_id: int) -> int:
        return self.db.query(DoctorClinic).filter(DoctorClinic.clinic_id == clinic_id).count()

    def get_assignment(self, doctor_id: int, clinic_id: int) -> Optional[DoctorClinic]:
        """Get the doctor's assignment at a specific clinic"""
        return (
            self.db.query(DoctorClinic)
            .filter(DoctorClinic.doctor_id == doctor_id, DoctorClinic.clinic_id == clinic_id)
            .first()
        )

    def get_assignment_by_id(self, assignment_id: int) -> Optional[DoctorClinic]:
        return (
            self.db.query(DoctorClinic)
            .options(joinedload(DoctorClinic.clinic))
            .filter(DoctorClinic.id == assignment_id)
            .first()
        )

    def list_assignments(self, doctor_id: int) -> list[DoctorClinic]:
        return (
            self.db.query(DoctorClinic)
            .options(joinedload(DoctorClinic.clinic))
            .filter(DoctorClinic.doctor_id == doctor_id)
            .order_by(DoctorClinic.id.asc())
            .all()
        )

    def create_assignment(
        self,
        doctor_id: int,
        clinic_id: int,
        consultation_fee: Optional[Decimal] = None,
    ) -> DoctorClinic:
        assignment = DoctorClinic(
            doctor_id=doctor_id,
            clinic_id=clinic_id,
            consultation_fee=consultation_fee,
        )
        self.db.add(assignment)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # uq_doctor_clinics_doctor_clinic lost a race with a concurrent request.
            self.db.rollback()
            raise Conflict(ALREADY_ASSIGNED) from exc
        self.db.refresh(assignment)
        return assignment

    def update_assignment_fee(self, assignment: DoctorClinic, consultation_fee: Optional[Decimal]) -> DoctorClinic:
        assignment.consultation_fee = consultation_fee
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def delete_assignment(self, assignment: DoctorClinic) -> None:
        """Remove an assignment together with its remaining inactive windows"""
        for schedule in list(assignment.schedules):
            self.db.delete(schedule)
        self.db.delete(assignment)
        self.db.commit()
