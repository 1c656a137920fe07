from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_permission
from backend.auth.permissions import Actor, Operation
from backend.core.errors import InvalidRequest, NotFound
from backend.database import get_db
from backend.repositories.appointment_repository import AppointmentRepository
from backend.repositories.clinic_repository import ClinicRepository
from backend.routes.common import ensure_database_ready, storage_errors

router = APIRouter(tags=['clinics'])


class CreateClinicRequest(BaseModel):
    name: str
    address: str | None = None
    city: str | None = None
    area: str | None = None
    phone: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Clinic name is required.')
        return normalized


class UpdateClinicRequest(BaseModel):
    name: str | None = None
    address: str | None = None
    city: str | None = None
    area: str | None = None
    phone: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError('Clinic name cannot be empty.')
        return normalized


class ClinicResponse(BaseModel):
    id: int
    name: str
    address: str | None = None
    city: str | None = None
    area: str | None = None
    phone: str | None = None

    class Config:
        from_attributes = True


@router.get('', response_model=list[ClinicResponse])
def list_clinics(
    city: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        return ClinicRepository(db).list_clinics(city=city)


@router.post('', response_model=ClinicResponse, status_code=status.HTTP_201_CREATED)
def create_clinic(
    data: CreateClinicRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_CLINICS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        return ClinicRepository(db).create_clinic(**data.model_dump())


@router.get('/{clinic_id}', response_model=ClinicResponse)
def get_clinic(
    clinic_id: int,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        clinic = ClinicRepository(db).get_clinic(clinic_id)
        if clinic is None:
            raise NotFound('Clinic not found')
        return clinic


@router.patch('/{clinic_id}', response_model=ClinicResponse)
def update_clinic(
    clinic_id: int,
    data: UpdateClinicRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_CLINICS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        clinics = ClinicRepository(db)
        clinic = clinics.get_clinic(clinic_id)
        if clinic is None:
            raise NotFound('Clinic not found')
        return clinics.update_clinic(clinic, **data.model_dump())


@router.delete('/{clinic_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_clinic(
    clinic_id: int,
    actor: Actor = Depends(require_permission(Operation.MANAGE_CLINICS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        clinics = ClinicRepository(db)
        clinic = clinics.get_clinic(clinic_id)
        if clinic is None:
            raise NotFound('Clinic not found')

        assigned_doctors = clinics.count_assignments(clinic_id)
        if assigned_doctors:
            raise InvalidRequest(
                f'Cannot delete clinic with {assigned_doctors} assigned doctors. Remove doctor assignments first.'
            )

        appointments = AppointmentRepository(db).count_for_clinic(clinic_id)
        if appointments:
            raise InvalidRequest(f'Cannot delete clinic with existing appointments ({appointments}).')

        clinics.delete_clinic(clinic)
