from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


DATABASE_URL = config.DATABASE_URL

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False

ACTIVE_APPOINTMENT_CLAUSE = "status <> 'CANCELLED'"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_appointment_schema() -> None:
    """Install booking indexes on appointment tables created before they existed."""
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_doctor_active_slot '
                    f'ON appointments(doctor_id, date_time) WHERE {ACTIVE_APPOINTMENT_CLAUSE}'
                )
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_patient_active_slot '
                    f'ON appointments(patient_id, date_time) WHERE {ACTIVE_APPOINTMENT_CLAUSE}'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_status ON appointments(doctor_id, status)')
            )

        _appointment_schema_checked = True
