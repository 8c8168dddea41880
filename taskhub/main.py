import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from .config import config
from .database import engine, Base
from .errors import (
    AuditDegraded, ConflictError, InvalidStateTransition, NotFound, PermissionDenied,
    TaskServiceError, ValidationError,
)
from .routes import router
from .routes.prometheus import metrics_middleware
from . import models  # noqa: F401  registers tables on Base

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# =========================================================
# FASTAPI APP
# =========================================================

app = FastAPI(title="Task Workflow API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register Prometheus middleware
app.middleware("http")(metrics_middleware)

# Include API Router
app.include_router(router)

# =========================================================
# DOMAIN ERROR HANDLERS
# =========================================================
STATUS_CODES = {
    PermissionDenied: 403,
    NotFound: 404,
    InvalidStateTransition: 409,
    ConflictError: 409,
    ValidationError: 422,
    AuditDegraded: 500,
}

@app.exception_handler(TaskServiceError)
async def task_service_error_handler(request: Request, exc: TaskServiceError):
    status_code = next(
        (code for exc_type, code in STATUS_CODES.items() if isinstance(exc, exc_type)), 400
    )
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, InvalidStateTransition):
        body["current"] = exc.current.value
        body["attempted"] = exc.attempted.value
    elif isinstance(exc, ValidationError):
        body["fields"] = exc.fields
    elif isinstance(exc, AuditDegraded):
        body["task_id"] = exc.task.id
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    elif status_code in (403, 409):
        logger.warning(f"{request.method} {request.url.path} refused: {exc}")
    return JSONResponse(status_code=status_code, content=body)

# =========================================================
# AUTO-CREATE TABLES ON STARTUP
# =========================================================
@app.on_event("startup")
def init_database():
    inspector = inspect(engine)
    existing_tables = inspector.get_table_names()
    Base.metadata.create_all(bind=engine)
    if existing_tables:
        logger.info(f"Tables already present: {existing_tables}")
    else:
        logger.info("Tables created")
