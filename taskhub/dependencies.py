import logging
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import jwt

from .config import config
from .database import SessionLocal
from .models import User
from .schemas import Actor
from .security_utils import decode_access_token
from .task_service import TaskService
from .user_service import UserService
from .metrics import record_task_activity

logger = logging.getLogger(__name__)

security = HTTPBearer()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Actor:
    if not config.SECRET_KEY:
        raise HTTPException(status_code=500, detail="Server misconfiguration: SECRET_KEY not set")

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e!r}")
        raise HTTPException(status_code=401, detail="Invalid token")

    sub = payload.get("sub")
    if sub is None:
        raise HTTPException(status_code=401, detail="Invalid token: subject missing")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token: subject is not an integer id")

    # Role always comes from the store, never from the token
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return Actor(user_id=user.id, role=user.role, name=user.name)

def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(db, listeners=[record_task_activity])

def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)
