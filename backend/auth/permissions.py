"""Role-based permission table for the API operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from backend.core.errors import PermissionDenied


class Role(str, Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class Operation(str, Enum):
    BOOK_APPOINTMENT = "book_appointment"
    VIEW_PATIENT_APPOINTMENTS = "view_patient_appointments"
    VIEW_DOCTOR_APPOINTMENTS = "view_doctor_appointments"
    TRANSITION_APPOINTMENT = "transition_appointment"
    CANCEL_APPOINTMENT = "cancel_appointment"
    UPDATE_APPOINTMENT_STATUS = "update_appointment_status"
    MANAGE_SCHEDULES = "manage_schedules"
    MANAGE_CLINIC_ASSIGNMENTS = "manage_clinic_assignments"
    MANAGE_CLINICS = "manage_clinics"
    MANAGE_USERS = "manage_users"


OPERATION_PERMISSIONS: dict[Operation, frozenset[Role]] = {
    Operation.BOOK_APPOINTMENT: frozenset({Role.PATIENT}),
    Operation.VIEW_PATIENT_APPOINTMENTS: frozenset({Role.PATIENT}),
    Operation.VIEW_DOCTOR_APPOINTMENTS: frozenset({Role.DOCTOR}),
    Operation.TRANSITION_APPOINTMENT: frozenset({Role.PATIENT, Role.DOCTOR}),
    Operation.CANCEL_APPOINTMENT: frozenset({Role.PATIENT}),
    Operation.UPDATE_APPOINTMENT_STATUS: frozenset({Role.DOCTOR}),
    Operation.MANAGE_SCHEDULES: frozenset({Role.DOCTOR}),
    Operation.MANAGE_CLINIC_ASSIGNMENTS: frozenset({Role.DOCTOR}),
    Operation.MANAGE_CLINICS: frozenset({Role.ADMIN}),
    Operation.MANAGE_USERS: frozenset({Role.ADMIN}),
}


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation."""
    role: Role
    user_id: int
    email: str = ""
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None


def is_permitted(role: Role, operation: Operation) -> bool:
    return role in OPERATION_PERMISSIONS.get(operation, frozenset())


def ensure_permitted(actor: Actor, operation: Operation) -> Actor:
    if not is_permitted(actor.role, operation):
        raise PermissionDenied(f'{actor.role.value.title()} accounts cannot {operation.value.replace("_", " ")}.')
    return actor
