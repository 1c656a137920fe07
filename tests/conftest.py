import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('CLINIC_TIMEZONE', 'UTC')

from backend.auth.permissions import Actor, Role  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from backend.models.clinic import Clinic, DoctorClinic  # noqa: E402
from backend.models.notification import Notification  # noqa: F401,E402
from backend.models.schedule import DoctorSchedule  # noqa: E402
from backend.models.user import Doctor, Patient, User  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: str, is_active: bool = True) -> User:
        user = User(email=email, hashed_password='not-a-real-hash', role=role, is_active=is_active)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_doctor(db, make_user):
    def _make_doctor(email: str = 'house@clinic.test', first_name: str = 'Gregory', last_name: str = 'House',
                     is_active: bool = True) -> Doctor:
        user = make_user(email, Role.DOCTOR.value, is_active=is_active)
        doctor = Doctor(user_id=user.id, first_name=first_name, last_name=last_name, years_of_experience=12)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_patient(db, make_user):
    def _make_patient(email: str = 'mona@patients.test', first_name: str = 'Mona', last_name: str = 'Adel') -> Patient:
        user = make_user(email, Role.PATIENT.value)
        patient = Patient(user_id=user.id, first_name=first_name, last_name=last_name, phone='01000000000')
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make_patient


@pytest.fixture
def make_clinic(db):
    def _make_clinic(name: str = 'Smouha Clinic', city: str = 'Alexandria') -> Clinic:
        clinic = Clinic(name=name, address=f'1 {name} St', city=city, area='Smouha')
        db.add(clinic)
        db.commit()
        db.refresh(clinic)
        return clinic

    return _make_clinic


@pytest.fixture
def assign_clinic(db):
    def _assign_clinic(doctor: Doctor, clinic: Clinic) -> DoctorClinic:
        assignment = DoctorClinic(doctor_id=doctor.id, clinic_id=clinic.id, consultation_fee=300)
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        return assignment

    return _assign_clinic


@pytest.fixture
def add_window(db):
    def _add_window(assignment: DoctorClinic, day_of_week: int, start_time: str, end_time: str,
                    is_active: bool = True) -> DoctorSchedule:
        schedule = DoctorSchedule(
            doctor_id=assignment.doctor_id,
            doctor_clinic_id=assignment.id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_active=is_active,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    return _add_window


@pytest.fixture
def add_appointment(db):
    def _add_appointment(doctor: Doctor, patient: Patient, date_time: datetime,
                         status: AppointmentStatus = AppointmentStatus.PENDING,
                         clinic: Clinic | None = None) -> Appointment:
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            clinic_id=clinic.id if clinic else None,
            date_time=date_time,
            status=status.value,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _add_appointment


@pytest.fixture
def doctor_actor():
    def _doctor_actor(doctor: Doctor) -> Actor:
        return Actor(role=Role.DOCTOR, user_id=doctor.user_id, email=doctor.user.email, doctor_id=doctor.id)

    return _doctor_actor


@pytest.fixture
def patient_actor():
    def _patient_actor(patient: Patient) -> Actor:
        return Actor(role=Role.PATIENT, user_id=patient.user_id, email=patient.user.email, patient_id=patient.id)

    return _patient_actor


@pytest.fixture
def clinic_setup(make_doctor, make_patient, make_clinic, assign_clinic, add_window):
    """Doctor working Mondays 09:00-17:00 at one clinic, plus one patient."""
    doctor = make_doctor()
    patient = make_patient()
    clinic = make_clinic()
    assignment = assign_clinic(doctor, clinic)
    window = add_window(assignment, 0, '09:00', '17:00')
    return {
        'doctor': doctor,
        'patient': patient,
        'clinic': clinic,
        'assignment': assignment,
        'window': window,
    }
