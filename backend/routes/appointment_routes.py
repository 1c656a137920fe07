from datetime import date, datetime
from typing import Callable

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_permission
from backend.auth.permissions import Actor, Operation
from backend.core.errors import NotFound, PermissionDenied
from backend.database import get_db
from backend.models.appointment import AppointmentStatus
from backend.repositories.appointment_repository import AppointmentRepository
from backend.repositories.schedule_repository import ScheduleRepository
from backend.repositories.user_repository import UserRepository
from backend.routes.common import (
    AppointmentResponse,
    build_appointment_response,
    ensure_database_ready,
    get_clock,
    normalize_notes,
    storage_errors,
)
from backend.services.booking_validator import BookingRequest, BookingValidator
from backend.services.slot_generator import SlotGenerator, SlotListing
from backend.services.status_transitions import StatusTransitionGuard

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    # Presence of doctor_id/date_time is a booking rule, answered with 400.
    doctor_id: int | None = None
    clinic_id: int | None = None
    date_time: datetime | None = None
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class SlotClinicResponse(BaseModel):
    id: int
    name: str
    address: str | None = None


class SlotResponse(BaseModel):
    time: str
    date_time: datetime
    clinic: SlotClinicResponse


class SlotListingResponse(BaseModel):
    date: date
    day_of_week: str
    available_slots: list[SlotResponse]
    total_slots: int
    message: str | None = None


def build_slot_listing_response(listing: SlotListing) -> SlotListingResponse:
    return SlotListingResponse(
        date=listing.date,
        day_of_week=listing.weekday.display_name,
        available_slots=[
            SlotResponse(
                time=slot.time,
                date_time=slot.date_time,
                clinic=SlotClinicResponse(id=slot.clinic.id, name=slot.clinic.name, address=slot.clinic.address),
            )
            for slot in listing.slots
        ],
        total_slots=len(listing.slots),
        message=listing.reason,
    )


@router.get('/doctors/{doctor_id}/slots', response_model=SlotListingResponse)
def list_doctor_slots(
    doctor_id: int,
    date: date = Query(...),
    clinic_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ensure_database_ready()

    with storage_errors(db):
        if UserRepository(db).get_doctor(doctor_id) is None:
            raise NotFound('Doctor not found')

        generator = SlotGenerator(ScheduleRepository(db), AppointmentRepository(db), clock=clock)
        return build_slot_listing_response(generator.generate_slots(doctor_id, date, clinic_id))


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: CreateAppointmentRequest,
    actor: Actor = Depends(require_permission(Operation.BOOK_APPOINTMENT)),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ensure_database_ready()

    with storage_errors(db):
        appointment = BookingValidator.for_session(db, clock=clock).book_appointment(
            BookingRequest(
                patient_id=actor.patient_id,
                doctor_id=data.doctor_id,
                clinic_id=data.clinic_id,
                date_time=data.date_time,
                notes=data.notes,
            )
        )
        return build_appointment_response(appointment)


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_my_appointments(
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    upcoming: bool = Query(default=False),
    actor: Actor = Depends(require_permission(Operation.VIEW_PATIENT_APPOINTMENTS)),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ensure_database_ready()

    with storage_errors(db):
        appointments = AppointmentRepository(db).list_for_patient(
            actor.patient_id,
            status=status_filter,
            not_before=clock() if upcoming else None,
        )
        return [build_appointment_response(appointment) for appointment in appointments]


@router.get('/appointments/{appointment_id}', response_model=AppointmentResponse)
def get_my_appointment(
    appointment_id: int,
    actor: Actor = Depends(require_permission(Operation.VIEW_PATIENT_APPOINTMENTS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        appointment = AppointmentRepository(db).get(appointment_id)
        if appointment is None:
            raise NotFound('Appointment not found')
        if appointment.patient_id != actor.patient_id:
            raise PermissionDenied('You can only view your own appointments')
        return build_appointment_response(appointment)


@router.patch('/appointments/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    actor: Actor = Depends(require_permission(Operation.CANCEL_APPOINTMENT)),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ensure_database_ready()

    with storage_errors(db):
        appointment = StatusTransitionGuard.for_session(db, clock=clock).transition_appointment(
            appointment_id,
            actor,
            AppointmentStatus.CANCELLED,
            notes=data.reason if data else None,
        )
        return build_appointment_response(appointment)
