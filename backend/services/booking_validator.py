"""Booking validator - rule checks and the atomic insert for new appointments.

Checks run in a fixed order and stop at the first failure, so a request that
breaks several rules always reports the same one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.calendar import Weekday, clinic_timezone, ensure_aware, format_wall_clock, utc_now
from backend.core.errors import Conflict, InvalidRequest, NotFound
from backend.models.appointment import Appointment, AppointmentStatus
from backend.models.schedule import DoctorSchedule
from backend.repositories.appointment_repository import AppointmentRepository
from backend.repositories.clinic_repository import ClinicRepository
from backend.repositories.schedule_repository import ScheduleRepository
from backend.repositories.user_repository import UserRepository
from backend.services.notification_service import (
    AppointmentBooked,
    NewAppointmentRequest,
    NotificationService,
)
from backend.services.slot_generator import NOT_AVAILABLE_REASON, window_contains

logger = logging.getLogger(__name__)

DOCTOR_SLOT_TAKEN = 'This time slot is already booked. Please choose another time.'
PATIENT_SLOT_TAKEN = 'You already have an appointment at this time'


@dataclass(frozen=True)
class BookingRequest:
    patient_id: int
    doctor_id: Optional[int]
    date_time: Optional[datetime]
    clinic_id: Optional[int] = None
    notes: Optional[str] = None


def describe_windows(windows: list[DoctorSchedule]) -> str:
    return ', '.join(
        f'{window.start_time} - {window.end_time} at {window.doctor_clinic.clinic.name}'
        for window in windows
    )


class BookingValidator:
    def __init__(
        self,
        db: Session,
        users: UserRepository,
        clinics: ClinicRepository,
        schedules: ScheduleRepository,
        appointments: AppointmentRepository,
        notifications: NotificationService,
        clock: Callable[[], datetime] = utc_now,
        tz: Optional[ZoneInfo] = None,
    ):
        self.db = db
        self.users = users
        self.clinics = clinics
        self.schedules = schedules
        self.appointments = appointments
        self.notifications = notifications
        self.clock = clock
        self.tz = tz or clinic_timezone()

    @classmethod
    def for_session(cls, db: Session, **kwargs) -> 'BookingValidator':
        return cls(
            db,
            users=UserRepository(db),
            clinics=ClinicRepository(db),
            schedules=ScheduleRepository(db),
            appointments=AppointmentRepository(db),
            notifications=NotificationService(db),
            **kwargs,
        )

    def book_appointment(self, request: BookingRequest) -> Appointment:
        if not request.doctor_id or request.date_time is None:
            raise InvalidRequest('Doctor ID and appointment date/time are required')

        appointment_time = ensure_aware(request.date_time, self.tz).replace(second=0, microsecond=0)
        if appointment_time <= self.clock():
            raise InvalidRequest('Appointment must be scheduled for a future date and time')

        doctor = self.users.get_doctor(request.doctor_id)
        if doctor is None:
            raise NotFound('Doctor not found')

        if not doctor.user.is_active:
            raise InvalidRequest('Doctor account is not active')

        if self.users.get_patient(request.patient_id) is None:
            raise NotFound('Patient not found')

        if request.clinic_id is not None and self.clinics.get_assignment(doctor.id, request.clinic_id) is None:
            raise InvalidRequest('Doctor does not work at the specified clinic')

        matching_windows = self._matching_windows(doctor.id, appointment_time, request.clinic_id)

        if self.appointments.find_active_for_doctor_at(doctor.id, appointment_time):
            raise Conflict(DOCTOR_SLOT_TAKEN)

        if self.appointments.find_active_for_patient_at(request.patient_id, appointment_time):
            raise Conflict(PATIENT_SLOT_TAKEN)

        clinic_id = request.clinic_id
        if clinic_id is None:
            matching_clinics = {window.doctor_clinic.clinic_id for window in matching_windows}
            if len(matching_clinics) == 1:
                clinic_id = matching_clinics.pop()

        appointment = Appointment(
            patient_id=request.patient_id,
            doctor_id=doctor.id,
            clinic_id=clinic_id,
            date_time=appointment_time,
            notes=request.notes,
            status=AppointmentStatus.PENDING.value,
        )

        try:
            self.appointments.add(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            conflict = self._conflict_from_integrity_error(exc)
            if conflict is None:
                raise
            raise conflict from exc

        self.db.refresh(appointment)
        logger.info(
            'Booked appointment %s for patient %s with doctor %s at %s',
            appointment.id,
            appointment.patient_id,
            appointment.doctor_id,
            appointment.date_time.isoformat(),
        )

        self._notify_booked(appointment)
        return appointment

    def _matching_windows(
        self,
        doctor_id: int,
        appointment_time: datetime,
        clinic_id: Optional[int],
    ) -> list[DoctorSchedule]:
        local_time = appointment_time.astimezone(self.tz)
        windows = self.schedules.list_active_windows(doctor_id, Weekday.of(local_time.date()), clinic_id)
        if not windows:
            raise InvalidRequest(NOT_AVAILABLE_REASON)

        matching = [window for window in windows if window_contains(window, local_time.time())]
        if not matching:
            raise InvalidRequest(
                f'Doctor is not available at {format_wall_clock(local_time)}. '
                f'Available times: {describe_windows(windows)}'
            )
        return matching

    def _conflict_from_integrity_error(self, exc: IntegrityError) -> Optional[Conflict]:
        detail = str(exc.orig)
        if 'date_time' not in detail and 'active_slot' not in detail:
            return None

        logger.warning('Concurrent booking rejected by unique index: %s', detail)
        if 'patient' in detail:
            return Conflict(PATIENT_SLOT_TAKEN)
        return Conflict(DOCTOR_SLOT_TAKEN)

    def _notify_booked(self, appointment: Appointment) -> None:
        doctor = appointment.doctor
        patient = appointment.patient
        self.notifications.notify(
            AppointmentBooked(
                user_id=patient.user_id,
                appointment_id=appointment.id,
                doctor_id=doctor.id,
                doctor_name=doctor.display_name,
                date_time=appointment.date_time,
            ),
            NewAppointmentRequest(
                user_id=doctor.user_id,
                appointment_id=appointment.id,
                patient_id=patient.id,
                patient_name=patient.display_name,
                date_time=appointment.date_time,
            ),
        )
