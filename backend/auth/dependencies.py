from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.permissions import Actor, Operation, Role, ensure_permitted
from backend.database import get_db
from backend.models.user import User
from backend.repositories.user_repository import UserRepository

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    try:
        claims = jwt_handler.decode_access_token(credentials.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    user = UserRepository(db).get_user_by_email(claims.email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    return user


def build_actor(user: User) -> Actor:
    try:
        role = Role(user.role)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown account role") from exc

    doctor_id = user.doctor.id if user.doctor is not None else None
    patient_id = user.patient.id if user.patient is not None else None

    if role is Role.DOCTOR and doctor_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Doctor profile not found")
    if role is Role.PATIENT and patient_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Patient profile not found")

    return Actor(role=role, user_id=user.id, email=user.email, doctor_id=doctor_id, patient_id=patient_id)


def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return build_actor(current_user)


def require_permission(operation: Operation):
    """Dependency factory that admits only roles allowed to run ``operation``."""

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        return ensure_permitted(actor, operation)

    return dependency
