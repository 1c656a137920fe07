import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.errors import ServiceError
from backend.database import Base, engine, ensure_appointment_schema
from backend.models import appointment, clinic, notification, schedule, user  # noqa: F401
from backend.routes import (
    admin_routes,
    appointment_routes,
    auth_routes,
    clinic_routes,
    doctor_directory_routes,
    doctor_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

app = FastAPI(title='Alex Med Services API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.message})


@app.get('/')
def root():
    return {'status': 'Alex Med Services API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(doctor_directory_routes.router)
app.include_router(appointment_routes.router)
app.include_router(doctor_routes.router, prefix='/doctor')
app.include_router(clinic_routes.router, prefix='/clinics')
app.include_router(admin_routes.router, prefix='/admin')
