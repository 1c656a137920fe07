from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.core.errors import NotFound
from backend.database import get_db
from backend.models.user import Doctor
from backend.repositories.user_repository import UserRepository
from backend.routes.common import ensure_database_ready, storage_errors

router = APIRouter(tags=['doctors'])


class DoctorClinicResponse(BaseModel):
    id: int
    name: str
    address: str | None = None
    city: str | None = None
    area: str | None = None
    consultation_fee: Decimal | None = None


class DoctorProfileResponse(BaseModel):
    id: int
    name: str
    years_of_experience: int | None = None
    bio: str | None = None
    clinics: list[DoctorClinicResponse]


def build_doctor_profile(doctor: Doctor) -> DoctorProfileResponse:
    return DoctorProfileResponse(
        id=doctor.id,
        name=doctor.display_name,
        years_of_experience=doctor.years_of_experience,
        bio=doctor.bio,
        clinics=[
            DoctorClinicResponse(
                id=assignment.clinic.id,
                name=assignment.clinic.name,
                address=assignment.clinic.address,
                city=assignment.clinic.city,
                area=assignment.clinic.area,
                consultation_fee=assignment.consultation_fee,
            )
            for assignment in doctor.clinic_assignments
        ],
    )


@router.get('/doctors', response_model=list[DoctorProfileResponse])
def list_doctors(
    search: str | None = Query(default=None),
    city: str | None = Query(default=None),
    area: str | None = Query(default=None),
    clinic_id: int | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        doctors = UserRepository(db).search_doctors(
            name=search.strip() if search else None,
            city=city,
            area=area,
            clinic_id=clinic_id,
            limit=limit,
            offset=offset,
        )
        return [build_doctor_profile(doctor) for doctor in doctors]


@router.get('/doctors/{doctor_id}', response_model=DoctorProfileResponse)
def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        doctor = UserRepository(db).get_active_doctor(doctor_id)
        if doctor is None:
            raise NotFound('Doctor not found')
        return build_doctor_profile(doctor)
