"""User repository - Database operations for users and their profiles"""

from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from backend.models.clinic import Clinic, DoctorClinic
from backend.models.user import Doctor, Patient, User


class UserRepository:
    """Repository for user, doctor and patient lookups"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return (
            self.db.query(User)
            .options(joinedload(User.doctor), joinedload(User.patient))
            .filter(User.email == email)
            .first()
        )

    def list_users(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[User]:
        """Newest accounts first, optionally filtered by role, status and email"""
        query = self.db.query(User).options(joinedload(User.doctor), joinedload(User.patient))
        if role is not None:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        if search:
            query = query.filter(User.email.ilike(f'%{search}%'))
        return query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit).all()

    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        """Get a doctor together with the owning user account"""
        return (
            self.db.query(Doctor)
            .options(joinedload(Doctor.user))
            .filter(Doctor.id == doctor_id)
            .first()
        )

    def get_active_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return (
            self._doctor_directory()
            .filter(Doctor.id == doctor_id)
            .first()
        )

    def search_doctors(
        self,
        name: Optional[str] = None,
        city: Optional[str] = None,
        area: Optional[str] = None,
        clinic_id: Optional[int] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Doctor]:
        """Active doctors matching a name fragment and where they consult"""
        query = self._doctor_directory()
        if name:
            pattern = f'%{name}%'
            query = query.filter(or_(Doctor.first_name.ilike(pattern), Doctor.last_name.ilike(pattern)))

        clinic_filters = []
        if clinic_id is not None:
            clinic_filters.append(DoctorClinic.clinic_id == clinic_id)
        if city:
            clinic_filters.append(DoctorClinic.clinic.has(Clinic.city.ilike(city)))
        if area:
            clinic_filters.append(DoctorClinic.clinic.has(Clinic.area.ilike(area)))
        if clinic_filters:
            query = query.filter(Doctor.clinic_assignments.any(and_(*clinic_filters)))

        return query.order_by(Doctor.last_name.asc(), Doctor.id.asc()).offset(offset).limit(limit).all()

    def _doctor_directory(self):
        return (
            self.db.query(Doctor)
            .join(Doctor.user)
            .options(
                joinedload(Doctor.user),
                selectinload(Doctor.clinic_assignments).joinedload(DoctorClinic.clinic),
            )
            .filter(User.is_active.is_(True))
        )

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        return (
            self.db.query(Patient)
            .options(joinedload(Patient.user))
            .filter(Patient.id == patient_id)
            .first()
        )

    def set_active(self, user: User, is_active: bool) -> User:
        user.is_active = is_active
        self.db.commit()
        self.db.refresh(user)
        return user
