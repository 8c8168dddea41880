import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .enums import Capability, Role
from .errors import NotFound, PermissionDenied, ValidationError
from .models import User
from .permissions import can_assign_role, has_permission, is_senior, require, validate_role_assignment
from .schemas import Actor, UserCreate, UserResponse
from .store import TaskStore

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = TaskStore(db)
        self.clock = clock

    def _load_user(self, user_id: int) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    def _commit(self, what: str) -> None:
        try:
            self.store.commit()
        except SQLAlchemyError:
            self.store.rollback()
            logger.exception(f"Failed to {what}")
            raise

    def get_user(self, actor: Actor, user_id: int) -> UserResponse:
        if actor.user_id != user_id and not (
            has_permission(actor.role, Capability.manage_users)
            or has_permission(actor.role, Capability.assign_tasks)
        ):
            raise PermissionDenied("Permission denied: cannot view other users")
        return UserResponse.model_validate(self._load_user(user_id))

    def create_user(self, actor: Actor, data: UserCreate) -> UserResponse:
        require(actor.role, Capability.manage_users, "create users")
        # Anyone who manages users may add plain users; other roles need assignment rights
        if data.role != Role.user and not can_assign_role(actor.role, data.role):
            raise PermissionDenied(f"Permission denied: {actor.role.value} cannot assign role {data.role.value}")

        if self.store.get_user_by_email(data.email) is not None:
            raise ValidationError(f"Email {data.email} is already registered", fields=["email"])

        now = self.clock()
        user = User(
            name=data.name,
            email=data.email,
            role=data.role,
            department=data.department,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.store.add_user(user)
        self._commit(f"create user {data.email}")
        logger.info(f"User {user.id} ({data.role.value}) created by user {actor.user_id}")
        return UserResponse.model_validate(user)

    def update_user_role(self, actor: Actor, user_id: int, new_role: Role) -> UserResponse:
        require(actor.role, Capability.manage_users, "update user roles")
        target = self._load_user(user_id)

        validate_role_assignment(actor.user_id, actor.role, target.id, target.role, new_role)

        if target.role == new_role:
            logger.info(f"Role for user {user_id} already {new_role.value}, skipping update")
            return UserResponse.model_validate(target)

        previous = target.role
        self.store.update_user(target, {"role": new_role, "updated_at": self.clock()})
        self._commit(f"update role for user {user_id}")
        logger.info(f"User {user_id} role {previous.value} -> {new_role.value} by user {actor.user_id}")
        return UserResponse.model_validate(target)

    def set_user_active(self, actor: Actor, user_id: int, is_active: bool) -> UserResponse:
        require(actor.role, Capability.manage_users, "activate or deactivate users")
        target = self._load_user(user_id)

        if target.id == actor.user_id:
            raise PermissionDenied("Permission denied: cannot change your own active flag")
        if not is_senior(actor.role, target.role):
            raise PermissionDenied(
                f"Permission denied: {actor.role.value} cannot modify a {target.role.value}"
            )

        self.store.update_user(target, {"is_active": is_active, "updated_at": self.clock()})
        self._commit(f"update active flag for user {user_id}")
        logger.info(f"User {user_id} active={is_active} set by user {actor.user_id}")
        return UserResponse.model_validate(target)
