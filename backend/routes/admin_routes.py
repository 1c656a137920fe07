import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_permission
from backend.auth.permissions import Actor, Operation, Role
from backend.core.errors import InvalidRequest, NotFound
from backend.database import get_db
from backend.repositories.user_repository import UserRepository
from backend.routes.common import ensure_database_ready, storage_errors
from backend.services.notification_service import AccountStatusChanged, NotificationService

router = APIRouter(tags=['admin'])

logger = logging.getLogger(__name__)


class UpdateUserStatusRequest(BaseModel):
    is_active: bool


class UserStatusResponse(BaseModel):
    id: int
    email: str
    role: str
    is_active: bool

    class Config:
        from_attributes = True


@router.get('/users', response_model=list[UserStatusResponse])
def list_users(
    role: Role | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(require_permission(Operation.MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with storage_errors(db):
        return UserRepository(db).list_users(
            role=role.value if role else None,
            is_active=is_active,
            search=search.strip() if search else None,
            limit=limit,
            offset=offset,
        )


@router.patch('/users/{user_id}/status', response_model=UserStatusResponse)
def update_user_status(
    user_id: int,
    data: UpdateUserStatusRequest,
    actor: Actor = Depends(require_permission(Operation.MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    if user_id == actor.user_id:
        raise InvalidRequest('You cannot change your own status')

    ensure_database_ready()

    with storage_errors(db):
        users = UserRepository(db)
        user = users.get_user(user_id)
        if user is None:
            raise NotFound('User not found')

        updated = users.set_active(user, data.is_active)
        logger.info('Admin %s set user %s active=%s', actor.user_id, updated.id, updated.is_active)

        NotificationService(db).notify(
            AccountStatusChanged(user_id=updated.id, role=updated.role, is_active=updated.is_active)
        )
        return updated
