from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from backend.core.calendar import Weekday
from backend.core.errors import Conflict, InvalidRequest, InvalidTransition, NotFound, PermissionDenied
from backend.models.appointment import AppointmentStatus
from backend.models.clinic import DoctorClinic
from backend.models.schedule import DoctorSchedule
from backend.routes.doctor_routes import (
    ClinicAssignmentRequest,
    CreateScheduleRequest,
    CreateWeekScheduleRequest,
    UpdateAppointmentStatusRequest,
    UpdateClinicAssignmentRequest,
    UpdateScheduleRequest,
    add_my_clinic,
    create_schedule,
    create_week_schedule,
    delete_schedule,
    list_doctor_appointments,
    list_my_clinics,
    list_my_schedules,
    remove_my_clinic,
    update_appointment_status,
    update_my_clinic,
    update_schedule,
)

SUNDAY_NOON = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
MONDAY_NINE = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.doctor_routes.ensure_database_ready', lambda: None)


def test_schedule_request_accepts_names_and_legacy_numbers() -> None:
    by_name = CreateScheduleRequest(clinic_id=1, day_of_week='tuesday', start_time='9:00', end_time='13:00')
    by_number = CreateScheduleRequest(clinic_id=1, day_of_week=0, start_time='09:00', end_time='13:00')

    assert by_name.day_of_week is Weekday.TUESDAY
    assert by_name.start_time == '09:00'
    assert by_number.day_of_week is Weekday.SUNDAY


@pytest.mark.parametrize(
    'fields',
    [
        {'day_of_week': 'someday', 'start_time': '09:00', 'end_time': '10:00'},
        {'day_of_week': 'monday', 'start_time': '25:00', 'end_time': '10:00'},
        {'day_of_week': 9, 'start_time': '09:00', 'end_time': '10:00'},
    ],
)
def test_schedule_request_rejects_bad_input(fields) -> None:
    with pytest.raises(ValidationError):
        CreateScheduleRequest(clinic_id=1, **fields)


def test_week_schedule_request_requires_entries() -> None:
    with pytest.raises(ValidationError):
        CreateWeekScheduleRequest(week_start_date=date(2025, 6, 2), schedules=[])


def test_clinic_assignment_request_rejects_negative_fee() -> None:
    with pytest.raises(ValidationError):
        ClinicAssignmentRequest(clinic_id=1, consultation_fee=Decimal('-1'))


def test_add_my_clinic_assigns_once(db, make_doctor, make_clinic, doctor_actor) -> None:
    doctor = make_doctor()
    clinic = make_clinic()
    actor = doctor_actor(doctor)

    response = add_my_clinic(data=ClinicAssignmentRequest(clinic_id=clinic.id, consultation_fee=Decimal('250')),
                             actor=actor, db=db)

    assert response.clinic.name == 'Smouha Clinic'
    assert response.consultation_fee == Decimal('250')
    assert [item.id for item in list_my_clinics(actor=actor, db=db)] == [response.id]

    with pytest.raises(Conflict) as exception_info:
        add_my_clinic(data=ClinicAssignmentRequest(clinic_id=clinic.id), actor=actor, db=db)
    assert exception_info.value.message == 'You are already assigned to this clinic'

    with pytest.raises(NotFound):
        add_my_clinic(data=ClinicAssignmentRequest(clinic_id=999), actor=actor, db=db)


def test_create_schedule_requires_clinic_assignment(db, make_doctor, make_clinic, doctor_actor) -> None:
    doctor = make_doctor()
    clinic = make_clinic()

    with pytest.raises(InvalidRequest) as exception_info:
        create_schedule(
            data=CreateScheduleRequest(clinic_id=clinic.id, day_of_week='monday', start_time='09:00', end_time='12:00'),
            actor=doctor_actor(doctor),
            db=db,
        )

    assert exception_info.value.message == 'You are not associated with this clinic. Please contact admin.'


def test_create_schedule_rejects_inverted_window(db, clinic_setup, doctor_actor) -> None:
    with pytest.raises(InvalidRequest) as exception_info:
        create_schedule(
            data=CreateScheduleRequest(
                clinic_id=clinic_setup['clinic'].id,
                day_of_week='friday',
                start_time='17:00',
                end_time='09:00',
            ),
            actor=doctor_actor(clinic_setup['doctor']),
            db=db,
        )

    assert exception_info.value.message == 'Start time must be before end time'


def test_create_schedule_stores_canonical_weekday(db, clinic_setup, doctor_actor) -> None:
    response = create_schedule(
        data=CreateScheduleRequest(clinic_id=clinic_setup['clinic'].id, day_of_week=3, start_time='10:00',
                                   end_time='14:00'),
        actor=doctor_actor(clinic_setup['doctor']),
        db=db,
    )

    stored = db.query(DoctorSchedule).filter(DoctorSchedule.id == response.id).one()
    assert response.day_of_week == 'Wednesday'
    assert stored.day_of_week == int(Weekday.WEDNESDAY)


def test_create_week_schedule_is_all_or_nothing(db, clinic_setup, make_doctor, make_clinic, assign_clinic,
                                                doctor_actor) -> None:
    other_assignment = assign_clinic(make_doctor(email='strange@clinic.test'), make_clinic(name='Gleem Clinic'))
    actor = doctor_actor(clinic_setup['doctor'])
    existing = db.query(DoctorSchedule).count()

    with pytest.raises(InvalidRequest) as exception_info:
        create_week_schedule(
            data=CreateWeekScheduleRequest(
                week_start_date=date(2025, 6, 2),
                schedules=[
                    {'doctor_clinic_id': clinic_setup['assignment'].id, 'day_of_week': 'tuesday',
                     'start_time': '09:00', 'end_time': '12:00'},
                    {'doctor_clinic_id': other_assignment.id, 'day_of_week': 'wednesday',
                     'start_time': '09:00', 'end_time': '12:00'},
                ],
            ),
            actor=actor,
            db=db,
        )

    assert exception_info.value.message == (
        f'Doctor clinic ID {other_assignment.id} not found or does not belong to you'
    )
    assert db.query(DoctorSchedule).count() == existing

    response = create_week_schedule(
        data=CreateWeekScheduleRequest(
            week_start_date=date(2025, 6, 2),
            schedules=[
                {'doctor_clinic_id': clinic_setup['assignment'].id, 'day_of_week': 'tuesday',
                 'start_time': '09:00', 'end_time': '12:00'},
                {'doctor_clinic_id': clinic_setup['assignment'].id, 'day_of_week': 'thursday',
                 'start_time': '13:00', 'end_time': '16:00'},
            ],
        ),
        actor=actor,
        db=db,
    )

    assert [item.day_of_week for item in response.schedules] == ['Tuesday', 'Thursday']

    grouped = list_my_schedules(clinic_id=None, is_active=None, actor=actor, db=db)
    assert grouped.total_schedules == existing + 2
    assert set(grouped.schedules_by_day) == {'Monday', 'Tuesday', 'Thursday'}


def test_update_schedule_validates_against_stored_times(db, clinic_setup, doctor_actor) -> None:
    actor = doctor_actor(clinic_setup['doctor'])
    window = clinic_setup['window']

    with pytest.raises(InvalidRequest):
        update_schedule(schedule_id=window.id, data=UpdateScheduleRequest(start_time='18:00'), actor=actor, db=db)

    response = update_schedule(
        schedule_id=window.id,
        data=UpdateScheduleRequest(end_time='12:00', is_active=False),
        actor=actor,
        db=db,
    )

    assert response.start_time == '09:00'
    assert response.end_time == '12:00'
    assert response.is_active is False


def test_schedule_changes_are_owner_only(db, clinic_setup, make_doctor, doctor_actor) -> None:
    intruder = doctor_actor(make_doctor(email='strange@clinic.test'))

    with pytest.raises(PermissionDenied):
        delete_schedule(schedule_id=clinic_setup['window'].id, actor=intruder, db=db)

    with pytest.raises(NotFound):
        delete_schedule(schedule_id=999, actor=intruder, db=db)


def test_delete_schedule_removes_window(db, clinic_setup, doctor_actor) -> None:
    delete_schedule(schedule_id=clinic_setup['window'].id, actor=doctor_actor(clinic_setup['doctor']), db=db)

    assert db.query(DoctorSchedule).count() == 0


def test_list_doctor_appointments_filters_by_day(db, clinic_setup, add_appointment, doctor_actor) -> None:
    doctor = clinic_setup['doctor']
    add_appointment(doctor, clinic_setup['patient'], MONDAY_NINE, clinic=clinic_setup['clinic'])
    add_appointment(doctor, clinic_setup['patient'], datetime(2025, 6, 9, 9, 0, tzinfo=timezone.utc))

    monday = list_doctor_appointments(
        status_filter=None,
        on_date=date(2025, 6, 2),
        clinic_id=None,
        actor=doctor_actor(doctor),
        db=db,
    )

    assert [item.date_time for item in monday] == [MONDAY_NINE]
    assert monday[0].clinic.name == 'Smouha Clinic'


def test_update_appointment_status_confirms_then_rejects_reopen(db, clinic_setup, add_appointment,
                                                                doctor_actor) -> None:
    appointment = add_appointment(clinic_setup['doctor'], clinic_setup['patient'], MONDAY_NINE)
    actor = doctor_actor(clinic_setup['doctor'])

    response = update_appointment_status(
        appointment_id=appointment.id,
        data=UpdateAppointmentStatusRequest(status='CONFIRMED'),
        actor=actor,
        db=db,
        clock=lambda: SUNDAY_NOON,
    )
    assert response.status == AppointmentStatus.CONFIRMED.value

    with pytest.raises(InvalidTransition):
        update_appointment_status(
            appointment_id=appointment.id,
            data=UpdateAppointmentStatusRequest(status='PENDING'),
            actor=actor,
            db=db,
            clock=lambda: SUNDAY_NOON,
        )


def test_update_my_clinic_changes_fee_for_owner_only(db, clinic_setup, make_doctor, doctor_actor) -> None:
    assignment = clinic_setup['assignment']

    with pytest.raises(PermissionDenied):
        update_my_clinic(
            assignment_id=assignment.id,
            data=UpdateClinicAssignmentRequest(consultation_fee=Decimal('100')),
            actor=doctor_actor(make_doctor(email='strange@clinic.test')),
            db=db,
        )

    response = update_my_clinic(
        assignment_id=assignment.id,
        data=UpdateClinicAssignmentRequest(consultation_fee=Decimal('450')),
        actor=doctor_actor(clinic_setup['doctor']),
        db=db,
    )

    assert response.consultation_fee == Decimal('450')


def test_add_my_clinic_reports_concurrent_assignment_as_conflict(db, make_doctor, make_clinic, assign_clinic,
                                                                 doctor_actor, monkeypatch) -> None:
    doctor = make_doctor()
    clinic = make_clinic()
    assign_clinic(doctor, clinic)
    # Another request inserted the row after this one checked for it.
    monkeypatch.setattr('backend.repositories.clinic_repository.ClinicRepository.get_assignment',
                        lambda self, doctor_id, clinic_id: None)

    with pytest.raises(Conflict) as exception_info:
        add_my_clinic(data=ClinicAssignmentRequest(clinic_id=clinic.id), actor=doctor_actor(doctor), db=db)

    assert exception_info.value.message == 'You are already assigned to this clinic'
    assert db.query(DoctorClinic).count() == 1


def test_remove_my_clinic_refuses_while_schedules_are_active(db, clinic_setup, doctor_actor) -> None:
    with pytest.raises(InvalidRequest) as exception_info:
        remove_my_clinic(
            assignment_id=clinic_setup['assignment'].id,
            actor=doctor_actor(clinic_setup['doctor']),
            db=db,
            clock=lambda: SUNDAY_NOON,
        )

    assert exception_info.value.message == 'Cannot remove clinic with 1 active schedule(s). Delete schedules first.'
    assert db.query(DoctorClinic).count() == 1


def test_remove_my_clinic_refuses_with_upcoming_appointments(db, clinic_setup, add_appointment,
                                                             doctor_actor) -> None:
    clinic_setup['window'].is_active = False
    db.commit()
    add_appointment(clinic_setup['doctor'], clinic_setup['patient'], MONDAY_NINE, clinic=clinic_setup['clinic'])

    with pytest.raises(InvalidRequest) as exception_info:
        remove_my_clinic(
            assignment_id=clinic_setup['assignment'].id,
            actor=doctor_actor(clinic_setup['doctor']),
            db=db,
            clock=lambda: SUNDAY_NOON,
        )

    assert exception_info.value.message == (
        'Cannot remove clinic with 1 upcoming appointment(s). Cancel or complete them first.'
    )


def test_remove_my_clinic_deletes_assignment_and_inactive_windows(db, clinic_setup, add_appointment,
                                                                   doctor_actor) -> None:
    clinic_setup['window'].is_active = False
    db.commit()
    add_appointment(clinic_setup['doctor'], clinic_setup['patient'], MONDAY_NINE, clinic=clinic_setup['clinic'],
                    status=AppointmentStatus.CANCELLED)

    remove_my_clinic(
        assignment_id=clinic_setup['assignment'].id,
        actor=doctor_actor(clinic_setup['doctor']),
        db=db,
        clock=lambda: SUNDAY_NOON,
    )

    assert db.query(DoctorClinic).count() == 0
    assert db.query(DoctorSchedule).count() == 0


def test_remove_my_clinic_is_owner_only(db, clinic_setup, make_doctor, doctor_actor) -> None:
    intruder = doctor_actor(make_doctor(email='strange@clinic.test'))

    with pytest.raises(PermissionDenied) as exception_info:
        remove_my_clinic(assignment_id=clinic_setup['assignment'].id, actor=intruder, db=db,
                         clock=lambda: SUNDAY_NOON)
    assert exception_info.value.message == 'You can only remove your own clinic assignments'

    with pytest.raises(NotFound):
        remove_my_clinic(assignment_id=999, actor=intruder, db=db, clock=lambda: SUNDAY_NOON)
