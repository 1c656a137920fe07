import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.calendar import utc_now
from backend.database import ensure_appointment_schema
from backend.models.appointment import Appointment

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


def get_clock() -> Callable[[], datetime]:
    return utc_now


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@contextmanager
def storage_errors(db: Session):
    """Roll back and answer 503 when the database fails mid-request."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Database operation failed')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class PersonSummary(BaseModel):
    id: int
    name: str
    email: str | None = None


class ClinicSummary(BaseModel):
    id: int
    name: str
    address: str | None = None
    city: str | None = None
    area: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    date_time: datetime
    status: str
    notes: str | None = None
    doctor: PersonSummary
    patient: PersonSummary
    clinic: ClinicSummary | None = None


def build_appointment_response(appointment: Appointment) -> AppointmentResponse:
    doctor = appointment.doctor
    patient = appointment.patient
    clinic = appointment.clinic

    return AppointmentResponse(
        id=appointment.id,
        date_time=appointment.date_time,
        status=appointment.status,
        notes=appointment.notes,
        doctor=PersonSummary(id=doctor.id, name=doctor.display_name),
        patient=PersonSummary(
            id=patient.id,
            name=patient.display_name,
            email=patient.user.email if patient.user else None,
        ),
        clinic=ClinicSummary(
            id=clinic.id,
            name=clinic.name,
            address=clinic.address,
            city=clinic.city,
            area=clinic.area,
        ) if clinic else None,
    )
