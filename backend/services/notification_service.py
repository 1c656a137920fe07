"""Notification service - typed notification events persisted per user.

Each event type is a frozen dataclass that knows its recipient, its fixed
``type`` tag, and how to render a title and message. The payload stays typed
until ``NotificationService`` writes it, where it becomes a JSON column.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Union
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.calendar import clinic_timezone
from backend.models.notification import Notification

logger = logging.getLogger(__name__)

APPOINTMENTS_CATEGORY = 'APPOINTMENTS'
ACCOUNT_CATEGORY = 'ACCOUNT'

_STATUS_VERBS = {
    'CONFIRMED': 'confirmed',
    'COMPLETED': 'completed',
    'CANCELLED': 'cancelled',
}


def _format_instant(value: datetime, tz: ZoneInfo | None = None) -> str:
    return value.astimezone(tz or clinic_timezone()).strftime('%Y-%m-%d %H:%M')


@dataclass(frozen=True)
class AppointmentBooked:
    """Sent to the patient after a successful booking."""
    type: ClassVar[str] = 'APPOINTMENT_BOOKED'
    role: ClassVar[str] = 'PATIENT'
    category: ClassVar[str] = APPOINTMENTS_CATEGORY
    priority: ClassVar[str] = 'medium'

    user_id: int
    appointment_id: int
    doctor_id: int
    doctor_name: str
    date_time: datetime

    @property
    def title(self) -> str:
        return 'Appointment Booked'

    @property
    def message(self) -> str:
        return f'Your appointment with {self.doctor_name} is scheduled for {_format_instant(self.date_time)}'

    def payload(self) -> dict:
        return {
            'appointmentId': self.appointment_id,
            'doctorId': self.doctor_id,
            'dateTime': self.date_time.isoformat(),
        }


@dataclass(frozen=True)
class NewAppointmentRequest:
    """Sent to the doctor when a patient books them."""
    type: ClassVar[str] = 'NEW_APPOINTMENT'
    role: ClassVar[str] = 'DOCTOR'
    category: ClassVar[str] = APPOINTMENTS_CATEGORY
    priority: ClassVar[str] = 'high'

    user_id: int
    appointment_id: int
    patient_id: int
    patient_name: str
    date_time: datetime

    @property
    def title(self) -> str:
        return 'New Appointment Request'

    @property
    def message(self) -> str:
        return f'{self.patient_name} booked an appointment for {_format_instant(self.date_time)}'

    def payload(self) -> dict:
        return {
            'appointmentId': self.appointment_id,
            'patientId': self.patient_id,
            'dateTime': self.date_time.isoformat(),
        }


@dataclass(frozen=True)
class AppointmentStatusChanged:
    """Sent to the patient when the doctor moves their appointment along."""
    role: ClassVar[str] = 'PATIENT'
    category: ClassVar[str] = APPOINTMENTS_CATEGORY

    user_id: int
    appointment_id: int
    doctor_id: int
    doctor_name: str
    status: str
    date_time: datetime

    @property
    def type(self) -> str:
        return f'APPOINTMENT_{self.status}'

    @property
    def priority(self) -> str:
        return 'high' if self.status == 'CANCELLED' else 'medium'

    @property
    def title(self) -> str:
        return f'Appointment {_STATUS_VERBS[self.status]}'

    @property
    def message(self) -> str:
        return (
            f'{self.doctor_name} {_STATUS_VERBS[self.status]} your appointment on '
            f'{_format_instant(self.date_time)}'
        )

    def payload(self) -> dict:
        return {
            'appointmentId': self.appointment_id,
            'doctorId': self.doctor_id,
            'status': self.status,
            'dateTime': self.date_time.isoformat(),
        }


@dataclass(frozen=True)
class AppointmentCancelledByPatient:
    """Sent to the doctor when a patient cancels."""
    type: ClassVar[str] = 'APPOINTMENT_CANCELLED_BY_PATIENT'
    role: ClassVar[str] = 'DOCTOR'
    category: ClassVar[str] = APPOINTMENTS_CATEGORY
    priority: ClassVar[str] = 'high'

    user_id: int
    appointment_id: int
    patient_id: int
    patient_name: str
    date_time: datetime
    reason: str | None = None

    @property
    def title(self) -> str:
        return 'Appointment Cancelled'

    @property
    def message(self) -> str:
        message = f'{self.patient_name} cancelled the appointment on {_format_instant(self.date_time)}'
        if self.reason:
            message = f'{message}: {self.reason}'
        return message

    def payload(self) -> dict:
        return {
            'appointmentId': self.appointment_id,
            'patientId': self.patient_id,
            'dateTime': self.date_time.isoformat(),
            'reason': self.reason,
        }


@dataclass(frozen=True)
class AccountStatusChanged:
    category: ClassVar[str] = ACCOUNT_CATEGORY

    user_id: int
    role: str
    is_active: bool

    @property
    def type(self) -> str:
        return 'ACCOUNT_ACTIVATED' if self.is_active else 'ACCOUNT_DEACTIVATED'

    @property
    def priority(self) -> str:
        return 'medium' if self.is_active else 'high'

    @property
    def title(self) -> str:
        return f'Account {"Activated" if self.is_active else "Deactivated"}'

    @property
    def message(self) -> str:
        if self.is_active:
            return 'Your account has been activated. You can now access all features.'
        return 'Your account has been deactivated. Please contact support for assistance.'

    def payload(self) -> dict:
        return {'isActive': self.is_active}


NotificationEvent = Union[
    AppointmentBooked,
    NewAppointmentRequest,
    AppointmentStatusChanged,
    AppointmentCancelledByPatient,
    AccountStatusChanged,
]


def to_notification(event: NotificationEvent) -> Notification:
    return Notification(
        user_id=event.user_id,
        role=event.role,
        type=event.type,
        title=event.title,
        message=event.message,
        data=json.dumps(event.payload()),
        priority=event.priority,
        category=event.category,
        is_read=False,
    )


class NotificationService:
    """Persists notification events without ever failing the caller."""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, *events: NotificationEvent) -> bool:
        """Store the events in one commit. Returns False when storage failed."""
        if not events:
            return True

        try:
            self.db.add_all([to_notification(event) for event in events])
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                'Failed to store notifications %s',
                ', '.join(f'{event.type}->user {event.user_id}' for event in events),
            )
            return False

        return True
