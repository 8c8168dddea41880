import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from .enums import ActivityAction
from .models import TaskActivity
from .schemas import ActivityResponse, Actor, TaskResponse
from .store import TaskStore

logger = logging.getLogger(__name__)

# Called with the committed task and one of its new entries
ActivityListener = Callable[[TaskResponse, ActivityResponse], None]


class ActivityLog:
    """Appends audit entries and fans committed ones out to listeners."""

    def __init__(self, store: TaskStore, listeners: Optional[Iterable[ActivityListener]] = None) -> None:
        self.store = store
        self.listeners: List[ActivityListener] = list(listeners or [])

    def subscribe(self, listener: ActivityListener) -> None:
        self.listeners.append(listener)

    def append(
        self,
        task_id: int,
        action: ActivityAction,
        actor: Actor,
        timestamp: datetime,
        comment: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> TaskActivity:
        """Stage an entry in the current unit of work; the caller commits."""
        entry = TaskActivity(
            task_id=task_id,
            action=action,
            performed_by=actor.user_id,
            performed_by_role=actor.role,
            timestamp=timestamp,
            comment=comment,
            details=details,
        )
        return self.store.append_activity(entry)

    def dispatch(self, task: TaskResponse, entries: Iterable[TaskActivity]) -> None:
        """Notify listeners of committed entries. Must only run after commit."""
        for entry in entries:
            event = ActivityResponse.model_validate(entry)
            for listener in self.listeners:
                try:
                    listener(task, event)
                except Exception:
                    logger.exception(
                        f"Activity listener {getattr(listener, '__name__', listener)!r} failed for task {task.id} ({event.action.value})"
                    )
