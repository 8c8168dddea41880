from datetime import datetime
from typing import Optional

from sqlalchemy import func, select

from .enums import TaskPriority, TaskStatus
from .models import Task
from .schemas import TaskAnalytics, TaskStatistics
from .store import TaskStore

OPEN_STATES = (TaskStatus.pending, TaskStatus.in_progress)

SECONDS_PER_DAY = 24 * 60 * 60


def _scope(assignee_id: Optional[int]) -> list:
    return [Task.assigned_to == assignee_id] if assignee_id is not None else []


def compute_statistics(store: TaskStore, now: datetime, assignee_id: Optional[int] = None) -> TaskStatistics:
    """Count tasks by status plus overdue ones, optionally for a single assignee.

    Always computed from the store, never cached.
    """
    scope = _scope(assignee_id)

    rows = store.execute(
        select(Task.status, func.count(Task.id)).where(*scope).group_by(Task.status)
    ).all()
    counts = {TaskStatus(status): count for status, count in rows}

    overdue = store.scalar(
        select(func.count(Task.id)).where(
            *scope,
            Task.status.in_(OPEN_STATES),
            Task.due_date.is_not(None),
            Task.due_date < now,
        )
    )

    total = sum(counts.values())
    return TaskStatistics(
        total=total,
        pending=counts.get(TaskStatus.pending, 0),
        in_progress=counts.get(TaskStatus.in_progress, 0),
        submitted=counts.get(TaskStatus.submitted, 0),
        completed=counts.get(TaskStatus.completed, 0),
        cancelled=counts.get(TaskStatus.cancelled, 0),
        overdue=overdue or 0,
        my_tasks_only=total if assignee_id is not None else None,
    )


def compute_analytics(store: TaskStore, now: datetime, assignee_id: Optional[int] = None) -> TaskAnalytics:
    """Status and priority breakdowns, completion rate and mean time to complete."""
    scope = _scope(assignee_id)
    stats = compute_statistics(store, now, assignee_id)

    rows = store.execute(
        select(Task.priority, func.count(Task.id)).where(*scope).group_by(Task.priority)
    ).all()
    by_priority = {priority: 0 for priority in TaskPriority}
    by_priority.update({TaskPriority(priority): count for priority, count in rows})

    spans = store.execute(
        select(Task.created_at, Task.completed_at).where(
            *scope,
            Task.status == TaskStatus.completed,
            Task.completed_at.is_not(None),
        )
    ).all()
    average_days = (
        sum((completed - created).total_seconds() for created, completed in spans) / len(spans) / SECONDS_PER_DAY
        if spans else 0.0
    )

    return TaskAnalytics(
        total=stats.total,
        completed=stats.completed,
        pending=stats.pending,
        overdue=stats.overdue,
        by_status={
            TaskStatus.pending: stats.pending,
            TaskStatus.in_progress: stats.in_progress,
            TaskStatus.submitted: stats.submitted,
            TaskStatus.completed: stats.completed,
            TaskStatus.cancelled: stats.cancelled,
        },
        by_priority=by_priority,
        completion_rate=stats.completed / stats.total * 100 if stats.total else 0.0,
        average_completion_days=average_days,
        my_tasks_only=stats.my_tasks_only,
    )
