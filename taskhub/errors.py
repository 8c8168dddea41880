"""
Domain errors raised by the task services.

Routes register one handler per type (see ``taskhub.main``), so services
never raise ``HTTPException`` themselves.
"""
from typing import List, Optional


class TaskServiceError(Exception):
    """Base class for every error the service layer raises."""


class PermissionDenied(TaskServiceError):
    """The actor lacks the capability or seniority for the operation.

    Always raised before any write, so the store is untouched.
    """


class NotFound(TaskServiceError):
    def __init__(self, resource: str, resource_id=None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class InvalidStateTransition(TaskServiceError):
    def __init__(self, current, attempted, message: Optional[str] = None) -> None:
        self.current = current
        self.attempted = attempted
        current_value = getattr(current, "value", current)
        attempted_value = getattr(attempted, "value", attempted)
        super().__init__(
            message or f"Cannot move task from {current_value} to {attempted_value}"
        )


class ValidationError(TaskServiceError):
    """Input was well-formed but broke a business rule.

    ``fields`` lists the offending field names or form field ids.
    """

    def __init__(self, message: str, fields: Optional[List[str]] = None) -> None:
        self.fields = list(fields or [])
        super().__init__(message)


class ConflictError(TaskServiceError):
    """A conditional update matched no row: someone else changed the task first."""

    def __init__(self, task_id, message: Optional[str] = None) -> None:
        self.task_id = task_id
        super().__init__(message or f"Task id={task_id} was modified concurrently, reload and retry")


class AuditDegraded(TaskServiceError):
    """The task was read but its VIEWED entry could not be recorded.

    ``task`` holds the read result so callers can still use it.
    """

    def __init__(self, task, cause: Exception) -> None:
        self.task = task
        self.cause = cause
        task_id = getattr(task, "id", None)
        super().__init__(f"Task id={task_id} was read but the audit entry failed: {cause}")
