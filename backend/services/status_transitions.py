"""Status transition guard for the appointment lifecycle.

PENDING is the only initial state; COMPLETED and CANCELLED are terminal.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from backend.auth.permissions import Actor, Operation, Role, ensure_permitted
from backend.core.calendar import utc_now
from backend.core.errors import InvalidRequest, InvalidTransition, NotFound, PermissionDenied
from backend.models.appointment import Appointment, AppointmentStatus
from backend.repositories.appointment_repository import AppointmentRepository
from backend.services.notification_service import (
    AppointmentCancelledByPatient,
    AppointmentStatusChanged,
    NotificationService,
)

logger = logging.getLogger(__name__)

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
COMPLETED = AppointmentStatus.COMPLETED
CANCELLED = AppointmentStatus.CANCELLED

ALLOWED_TRANSITIONS: dict[tuple[AppointmentStatus, AppointmentStatus], frozenset[Role]] = {
    (PENDING, CONFIRMED): frozenset({Role.DOCTOR}),
    (PENDING, CANCELLED): frozenset({Role.DOCTOR, Role.PATIENT}),
    (CONFIRMED, COMPLETED): frozenset({Role.DOCTOR}),
    (CONFIRMED, CANCELLED): frozenset({Role.DOCTOR, Role.PATIENT}),
}

TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})


def is_transition_allowed(current: AppointmentStatus, target: AppointmentStatus, role: Role) -> bool:
    return role in ALLOWED_TRANSITIONS.get((current, target), frozenset())


class StatusTransitionGuard:
    def __init__(
        self,
        db: Session,
        appointments: AppointmentRepository,
        notifications: NotificationService,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.appointments = appointments
        self.notifications = notifications
        self.clock = clock

    @classmethod
    def for_session(cls, db: Session, **kwargs) -> 'StatusTransitionGuard':
        return cls(db, AppointmentRepository(db), NotificationService(db), **kwargs)

    def transition_appointment(
        self,
        appointment_id: int,
        actor: Actor,
        target_status: AppointmentStatus,
        notes: Optional[str] = None,
    ) -> Appointment:
        ensure_permitted(actor, Operation.TRANSITION_APPOINTMENT)

        appointment = self.appointments.get(appointment_id, for_update=True)
        if appointment is None:
            raise NotFound('Appointment not found')

        self._ensure_participant(appointment, actor)

        current_status = AppointmentStatus(appointment.status)
        if not is_transition_allowed(current_status, target_status, actor.role):
            self.db.rollback()
            if target_status is CANCELLED and current_status in TERMINAL_STATUSES:
                raise InvalidTransition(
                    current_status.value,
                    target_status.value,
                    f'This appointment is already {current_status.value.lower()} and cannot be cancelled',
                )
            raise InvalidTransition(current_status.value, target_status.value)

        if actor.role is Role.PATIENT and appointment.date_time <= self.clock():
            self.db.rollback()
            raise InvalidRequest('Cannot cancel past appointments')

        appointment.status = target_status.value
        if actor.role is Role.PATIENT:
            if notes:
                appointment.notes = f'Cancelled: {notes}'
        elif notes:
            appointment.notes = notes

        self.db.commit()
        self.db.refresh(appointment)
        logger.info(
            'Appointment %s moved from %s to %s by %s %s',
            appointment.id,
            current_status.value,
            target_status.value,
            actor.role.value,
            actor.user_id,
        )

        self._notify_counterparty(appointment, actor, notes)
        return appointment

    def _ensure_participant(self, appointment: Appointment, actor: Actor) -> None:
        if actor.role is Role.DOCTOR and appointment.doctor_id != actor.doctor_id:
            self.db.rollback()
            raise PermissionDenied('You can only update your own appointments')
        if actor.role is Role.PATIENT and appointment.patient_id != actor.patient_id:
            self.db.rollback()
            raise PermissionDenied('You can only cancel your own appointments')

    def _notify_counterparty(self, appointment: Appointment, actor: Actor, notes: Optional[str]) -> None:
        doctor = appointment.doctor
        patient = appointment.patient

        if actor.role is Role.DOCTOR:
            event = AppointmentStatusChanged(
                user_id=patient.user_id,
                appointment_id=appointment.id,
                doctor_id=doctor.id,
                doctor_name=doctor.display_name,
                status=appointment.status,
                date_time=appointment.date_time,
            )
        else:
            event = AppointmentCancelledByPatient(
                user_id=doctor.user_id,
                appointment_id=appointment.id,
                patient_id=patient.id,
                patient_name=patient.display_name,
                date_time=appointment.date_time,
                reason=notes,
            )

        self.notifications.notify(event)
