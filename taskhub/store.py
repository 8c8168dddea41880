"""
Persistence boundary for tasks, users and activity entries.

Every write the services make goes through ``TaskStore`` so that the
rules about how the store may be touched live in one place:

* task mutations are conditional updates guarded by the status and
  version the caller read, so a racing writer is detected instead of
  overwritten;
* activity entries are insert-only, there is no method to change or
  remove one;
* nothing here commits implicitly, the service decides when a unit of
  work is complete.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .enums import TaskStatus
from .errors import ConflictError
from .models import Task, TaskActivity, TaskTag, User

logger = logging.getLogger(__name__)


class TaskStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # Users
    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.scalars(select(User).where(User.email == email)).first()

    def list_active_users(self) -> List[User]:
        return list(self.db.scalars(select(User).where(User.is_active.is_(True)).order_by(User.name, User.id)))

    def add_user(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def update_user(self, user: User, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            setattr(user, key, value)
        self.db.flush()

    # Tasks
    def get_task(self, task_id: int) -> Optional[Task]:
        # Always read the current row; a cached copy may predate another writer's commit
        return self.db.get(Task, task_id, populate_existing=True)

    def insert_task(self, task: Task, tags: Iterable[str] = ()) -> Task:
        self.db.add(task)
        self.db.flush()
        for tag in tags:
            self.db.add(TaskTag(task_id=task.id, tag=tag))
        self.db.flush()
        return task

    def conditional_update(
        self,
        task_id: int,
        expected_status: TaskStatus,
        expected_version: int,
        values: Dict[str, Any],
    ) -> None:
        """Apply values only if the row still has the status and version the caller read.

        Raises ConflictError (after rolling back) when no row matched.
        """
        result = self.db.execute(
            update(Task)
            .where(
                Task.id == task_id,
                Task.status == expected_status,
                Task.version == expected_version,
            )
            .values(version=Task.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            logger.warning(
                f"Conditional update lost for task {task_id}: expected {expected_status.value} v{expected_version}"
            )
            raise ConflictError(task_id)

    # Activity log
    def append_activity(self, entry: TaskActivity) -> TaskActivity:
        self.db.add(entry)
        self.db.flush()
        return entry

    # Queries
    def scalars(self, stmt) -> List[Any]:
        return list(self.db.scalars(stmt))

    def scalar(self, stmt) -> Any:
        return self.db.scalar(stmt)

    def execute(self, stmt):
        return self.db.execute(stmt)

    # Unit of work
    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, obj) -> None:
        self.db.refresh(obj)
