import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_permission
from backend.auth.permissions import Actor, Operation
from backend.core.calendar import Weekday, clinic_timezone, local_day_bounds, normalize_wall_clock
from backend.core.errors import Conflict, InvalidRequest, NotFound, PermissionDenied
from backend.database import get_db
from backend.models.appointment import AppointmentStatus
from backend.models.clinic import DoctorClinic
from backend.models.schedule import DoctorSchedule
from backend.repositories.appointment_repository import AppointmentRepository
from backend.repositories.clinic_repository import ALREADY_ASSIGNED, ClinicRepository
from backend.repositories.schedule_repository import ScheduleRepository
from backend.routes.common import (
    AppointmentResponse,
    ClinicSummary,
    build_appointment_response,
    ensure_database_ready,
    get_clock,
    normalize_notes,
    storage_errors,
)
from backend.services.status_transitions import StatusTransitionGuard

router = APIRouter(tags=['doctor'])

logger = logging.getLogger(__name__)


def _validate_fee(value: Decimal | None) -> Decimal | None:
    if value is not None and value < 0:
        raise ValueError('Consultation fee must be a valid positive number.')
    return value


def _validate_window(start_time: str, end_time: str) -> None:
    # Normalized "HH:MM" strings order the same way as the times they encode.
    if start_time >= end_time:
        raise InvalidRequest('Start time must be before end time')


class ClinicAssignmentRequest(BaseModel):
    clinic_id: int
    consultation_fee: Decimal | None = None

    @field_validator('consultation_fee')
    @classmethod
    def validate_consultation_fee(cls, value: Decimal | None) -> Decimal | None:
        return _validate_fee(value)


class UpdateClinicAssignmentRequest(BaseModel):
    consultation_fee: Decimal | None = None

    @field_validator('consultation_fee')
    @classmethod
    def validate_consultation_fee(cls, value: Decimal | None) -> Decimal | None:
        return _validate_fee(value)


class ClinicAssignmentResponse(BaseModel):
    id: int
    clinic: ClinicSummary
    consultation_fee: Decimal | None = None
    assigned_at: datetime | None = None


class ScheduleWindowRequest(BaseModel):
    day_of_week: Weekday
    start_time: str
    end_time: str

    @field_validator('day_of_week', mode='before')
    @classmethod
    def validate_day_of_week(cls, value) -> Weekday:
        return Weekday.parse(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_wall_clock(cls, value: str) -> str:
        return normalize_wall_clock(value)


class CreateScheduleRequest(ScheduleWindowRequest):
    clinic_id: int


class WeekScheduleEntry(ScheduleWindowRequest):
    doctor_clinic_id: int


class CreateWeekScheduleRequest(BaseModel):
    week_start_date: date
    schedules: list[WeekScheduleEntry]

    @field_validator('schedules')
    @classmethod
    def validate_schedules(cls, value: list[WeekScheduleEntry]) -> list[WeekScheduleEntry]:
        if not value:
            raise ValueError('Schedules array is required.')
        return value


class UpdateScheduleRequest(BaseModel):
    start_time: str | None = None
    end_time: str | None = None
    is_active: bool | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_wall_clock(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_wall_clock(value)


class ScheduleResponse(BaseModel):
    id: int
    clinic: ClinicSummary
    day_of_week: str
    start_time: str
    end_time: str
    is_active: bool


class WeekScheduleResponse(BaseModel):
    week_start_date: date
    schedules: list[ScheduleResponse]


class SchedulesByDayResponse(BaseModel):
    total_schedules: int
    schedules_by_day: dict[str, list[ScheduleResponse]]


class UpdateAppointmentStatusRequest(BaseModel):
    status: AppointmentStatus
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


def _clinic_summary(assignment: DoctorClinic) -> ClinicSummary:
    clinic = assignment.clinic
    return ClinicSummary(id=clinic.id, name=clinic.name, address=clinic.address, city=clinic.city, area=clinic.area)


def build_assignment_response(assignment: DoctorClinic) -> ClinicAssignmentResponse:
    return ClinicAssignmentResponse(
        id=assignment.id,
        clinic=_clinic_summary(assignment),
        consultation_fee=assignment.consultation_fee,
        assigned_at=assignment.created_at,
    )


def build_schedule_response(schedule: DoctorSchedule) -> ScheduleResponse:
    return ScheduleResponse(
        id=schedule.id,
        clinic=_clinic_summary(schedule.doctor_clinic),
        day_of_week=Weekday(schedule.day_of_week).display_name,
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        is_active=schedule.is_active,
    )


def get_owned_schedule(schedules: ScheduleRepository, schedule_id: int, actor: Actor) -> DoctorSchedule:
    schedule = schedules.get(schedule_id)
    if schedule is None:
        raise NotFound('Schedule not found')
    if schedule.doctor_id != actor.doctor_id:
        raise PermissionDenied('You can only manage your own schedules')
    return schedule


@router.post('/clinics', response_model=ClinicAssignmentResponse, status_code=status.HTTP_201_CREATED)
def add_my_clinic(
    data: ClinicAssignmentRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_CLINIC_ASSIGNMENTS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        clinics = ClinicRepository(db)
        if clinics.get_clinic(data.clinic_id) is None:
            raise NotFound('Clinic not found')
        if clinics.get_assignment(actor.doctor_id, data.clinic_id) is not None:
            raise Conflict(ALREADY_ASSIGNED)

        assignment = clinics.create_assignment(actor.doctor_id, data.clinic_id, data.consultation_fee)
        return build_assignment_response(assignment)


@router.get('/clinics', response_model=list[ClinicAssignmentResponse])
def list_my_clinics(
    actor: Actor = Depends(require_permission(Operation.MANAGE_CLINIC_ASSIGNMENTS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        return [build_assignment_response(assignment) for assignment in ClinicRepository(db).list_assignments(actor.doctor_id)]


@router.patch('/clinics/{assignment_id}', response_model=ClinicAssignmentResponse)
def update_my_clinic(
    assignment_id: int,
    data: UpdateClinicAssignmentRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_CLINIC_ASSIGNMENTS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        clinics = ClinicRepository(db)
        assignment = clinics.get_assignment_by_id(assignment_id)
        if assignment is None:
            raise NotFound('Clinic assignment not found')
        if assignment.doctor_id != actor.doctor_id:
            raise PermissionDenied('You can only update your own clinic assignments')

        return build_assignment_response(clinics.update_assignment_fee(assignment, data.consultation_fee))


@router.delete('/clinics/{assignment_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_my_clinic(
    assignment_id: int,
    actor: Actor = Depends(require_permission(Operation.MANAGE_CLINIC_ASSIGNMENTS)),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ensure_database_ready()

    with storage_errors(db):
        clinics = ClinicRepository(db)
        assignment = clinics.get_assignment_by_id(assignment_id)
        if assignment is None:
            raise NotFound('Clinic assignment not found')
        if assignment.doctor_id != actor.doctor_id:
            raise PermissionDenied('You can only remove your own clinic assignments')

        active_schedules = ScheduleRepository(db).count_active_for_assignment(assignment.id)
        if active_schedules:
            raise InvalidRequest(
                f'Cannot remove clinic with {active_schedules} active schedule(s). Delete schedules first.'
            )

        upcoming = AppointmentRepository(db).count_upcoming_at_clinic(actor.doctor_id, assignment.clinic_id, clock())
        if upcoming:
            raise InvalidRequest(
                f'Cannot remove clinic with {upcoming} upcoming appointment(s). Cancel or complete them first.'
            )

        clinics.delete_assignment(assignment)
        logger.info('Doctor %s removed clinic assignment %s', actor.doctor_id, assignment_id)


@router.post('/schedules', response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(
    data: CreateScheduleRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_SCHEDULES)),
    db: Session = Depends(get_db),
):
    _validate_window(data.start_time, data.end_time)
    ensure_database_ready()

    with storage_errors(db):
        assignment = ClinicRepository(db).get_assignment(actor.doctor_id, data.clinic_id)
        if assignment is None:
            raise InvalidRequest('You are not associated with this clinic. Please contact admin.')

        schedule = DoctorSchedule(
            doctor_id=actor.doctor_id,
            doctor_clinic_id=assignment.id,
            day_of_week=int(data.day_of_week),
            start_time=data.start_time,
            end_time=data.end_time,
            is_active=True,
        )
        ScheduleRepository(db).add_all([schedule])
        logger.info('Doctor %s added schedule %s on %s', actor.doctor_id, schedule.id, data.day_of_week.name)
        return build_schedule_response(schedule)


@router.post('/schedules/week', response_model=WeekScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_week_schedule(
    data: CreateWeekScheduleRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_SCHEDULES)),
    db: Session = Depends(get_db),
):
    for entry in data.schedules:
        _validate_window(entry.start_time, entry.end_time)

    ensure_database_ready()

    with storage_errors(db):
        clinics = ClinicRepository(db)
        for entry in data.schedules:
            assignment = clinics.get_assignment_by_id(entry.doctor_clinic_id)
            if assignment is None or assignment.doctor_id != actor.doctor_id:
                raise InvalidRequest(
                    f'Doctor clinic ID {entry.doctor_clinic_id} not found or does not belong to you'
                )

        schedules = ScheduleRepository(db).add_all([
            DoctorSchedule(
                doctor_id=actor.doctor_id,
                doctor_clinic_id=entry.doctor_clinic_id,
                day_of_week=int(entry.day_of_week),
                start_time=entry.start_time,
                end_time=entry.end_time,
                is_active=True,
            )
            for entry in data.schedules
        ])
        return WeekScheduleResponse(
            week_start_date=data.week_start_date,
            schedules=[build_schedule_response(schedule) for schedule in schedules],
        )


@router.get('/schedules', response_model=SchedulesByDayResponse)
def list_my_schedules(
    clinic_id: int | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    actor: Actor = Depends(require_permission(Operation.MANAGE_SCHEDULES)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        schedules = ScheduleRepository(db).list_for_doctor(actor.doctor_id, clinic_id=clinic_id, is_active=is_active)

        schedules_by_day: dict[str, list[ScheduleResponse]] = {}
        for schedule in schedules:
            response = build_schedule_response(schedule)
            schedules_by_day.setdefault(response.day_of_week, []).append(response)

        return SchedulesByDayResponse(total_schedules=len(schedules), schedules_by_day=schedules_by_day)


@router.patch('/schedules/{schedule_id}', response_model=ScheduleResponse)
def update_schedule(
    schedule_id: int,
    data: UpdateScheduleRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_SCHEDULES)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        schedules = ScheduleRepository(db)
        schedule = get_owned_schedule(schedules, schedule_id, actor)

        _validate_window(data.start_time or schedule.start_time, data.end_time or schedule.end_time)

        updated = schedules.update(
            schedule,
            start_time=data.start_time,
            end_time=data.end_time,
            is_active=data.is_active,
        )
        return build_schedule_response(updated)


@router.delete('/schedules/{schedule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    actor: Actor = Depends(require_permission(Operation.MANAGE_SCHEDULES)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        schedules = ScheduleRepository(db)
        schedules.delete(get_owned_schedule(schedules, schedule_id, actor))


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    on_date: date | None = Query(default=None, alias='date'),
    clinic_id: int | None = Query(default=None),
    actor: Actor = Depends(require_permission(Operation.VIEW_DOCTOR_APPOINTMENTS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    range_start = range_end = None
    if on_date is not None:
        range_start, range_end = local_day_bounds(on_date, clinic_timezone())

    with storage_errors(db):
        appointments = AppointmentRepository(db).list_for_doctor(
            actor.doctor_id,
            status=status_filter,
            range_start=range_start,
            range_end=range_end,
            clinic_id=clinic_id,
        )
        return [build_appointment_response(appointment) for appointment in appointments]


@router.patch('/appointments/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentStatusRequest,
    actor: Actor = Depends(require_permission(Operation.UPDATE_APPOINTMENT_STATUS)),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ensure_database_ready()

    with storage_errors(db):
        appointment = StatusTransitionGuard.for_session(db, clock=clock).transition_appointment(
            appointment_id,
            actor,
            data.status,
            notes=data.notes,
        )
        return build_appointment_response(appointment)
