from fastapi import APIRouter, Depends
from pydantic import BaseModel

from backend.auth.dependencies import get_current_actor
from backend.auth.permissions import Actor

router = APIRouter(tags=['auth'])


class CurrentActorResponse(BaseModel):
    user_id: int
    email: str
    role: str
    doctor_id: int | None = None
    patient_id: int | None = None


@router.get("/me", response_model=CurrentActorResponse)
def me(actor: Actor = Depends(get_current_actor)):
    return CurrentActorResponse(
        user_id=actor.user_id,
        email=actor.email,
        role=actor.role.value,
        doctor_id=actor.doctor_id,
        patient_id=actor.patient_id,
    )
