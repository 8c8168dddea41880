from typing import List
from fastapi import APIRouter, Depends, status

from ..dependencies import get_current_actor, get_task_service, get_user_service
from ..schemas import Actor, ActiveUpdate, AvailableUser, RoleUpdate, UserCreate, UserResponse
from ..task_service import TaskService
from ..user_service import UserService

router = APIRouter()

# =========================================================
# USER ENDPOINTS
# =========================================================
@router.get("/me", response_model=UserResponse)
def get_me(
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    return service.get_user(actor, actor.user_id)

@router.get("/available", response_model=List[AvailableUser])
def get_available_users(
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.get_available_users(actor)

@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    return service.create_user(actor, user_data)

@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    return service.get_user(actor, user_id)

@router.put("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    role_update: RoleUpdate,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    return service.update_user_role(actor, user_id, role_update.role)

@router.put("/{user_id}/active", response_model=UserResponse)
def set_user_active(
    user_id: int,
    active_update: ActiveUpdate,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    return service.set_user_active(actor, user_id, active_update.is_active)
