"""
Task lifecycle service.

A ``TaskService`` is built per request around one SQLAlchemy session and
carries no state between calls. Each operation follows the same order:

1. check the actor's capability (and, once the task is read, their
   relationship to it);
2. check the state machine;
3. apply one conditional update plus its activity entries, and commit
   them together;
4. notify activity listeners.

A failure at steps 1-2 leaves the store untouched. A failure at step 3
rolls the whole unit back and propagates, so a task never changes
without its audit entry. The exception is the VIEWED entry written on
reads, which is committed on its own and surfaces as ``AuditDegraded``
when it fails.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .activity import ActivityListener, ActivityLog
from .enums import ActivityAction, Capability, ExportFormat, TaskStatus
from .errors import AuditDegraded, InvalidStateTransition, NotFound, PermissionDenied, ValidationError
from .export import render
from .forms import check_response
from .models import Task
from .permissions import has_permission, require
from .queries import fetch_all, fetch_page
from .schemas import (
    Actor, AvailableUser, StoredFile, TaskAnalytics, TaskCreate, TaskFilters, TaskForm, TaskPage,
    TaskQuery, TaskResponse, TaskReview, TaskStatistics, TaskStatusUpdate, TaskSubmission,
)
from .state_machine import action_for, check_transition
from .statistics import compute_analytics, compute_statistics
from .store import TaskStore

logger = logging.getLogger(__name__)

# Statuses a caller may request through update_task_status
DIRECT_STATUS_TARGETS = (TaskStatus.in_progress, TaskStatus.cancelled)


class TaskService:
    def __init__(
        self,
        db: Session,
        listeners: Optional[Iterable[ActivityListener]] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.store = TaskStore(db)
        self.activity = ActivityLog(self.store, listeners)
        self.clock = clock

    # =========================================================
    # HELPERS
    # =========================================================
    def _load_task(self, task_id: int) -> Task:
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFound("Task", task_id)
        return task

    def _stamp_files(self, files: List[StoredFile], actor: Actor, now: datetime) -> List[dict]:
        stamped = []
        for f in files:
            f = f.model_copy(update={
                "uploaded_by": f.uploaded_by if f.uploaded_by is not None else actor.user_id,
                "uploaded_at": f.uploaded_at or now,
            })
            stamped.append(f.model_dump(mode="json"))
        return stamped

    def _can_read(self, actor: Actor, task: Task) -> bool:
        return (
            task.assigned_to == actor.user_id
            or task.assigned_by == actor.user_id
            or has_permission(actor.role, Capability.view_all_tasks)
        )

    def _commit_change(
        self,
        task: Task,
        actor: Actor,
        expected_status: TaskStatus,
        values: dict,
        action: ActivityAction,
        comment: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> TaskResponse:
        """Conditional update plus one activity entry, committed as a unit."""
        task_id, expected_version = task.id, task.version
        now = self.clock()
        try:
            self.store.conditional_update(
                task_id, expected_status, expected_version, dict(values, updated_at=now)
            )
            entry = self.activity.append(task_id, action, actor, now, comment, details)
            self.store.commit()
        except SQLAlchemyError:
            self.store.rollback()
            logger.exception(f"Failed to persist {action.value} for task {task_id}")
            raise

        self.store.refresh(task)
        response = TaskResponse.model_validate(task)
        self.activity.dispatch(response, [entry])
        logger.info(f"Task {task_id}: {action.value} by user {actor.user_id} ({actor.role.value})")
        return response

    # =========================================================
    # CREATE
    # =========================================================
    def create_task(self, actor: Actor, data: TaskCreate) -> TaskResponse:
        require(actor.role, Capability.create_tasks, "create tasks")

        creator = self.store.get_user(actor.user_id)
        if creator is None or not creator.is_active:
            raise PermissionDenied("Permission denied: creator account is missing or inactive")

        assignee = self.store.get_user(data.assigned_to)
        if assignee is None:
            raise NotFound("User", data.assigned_to)
        if not assignee.is_active:
            raise ValidationError(f"User {assignee.id} is not active", fields=["assigned_to"])

        now = self.clock()
        task = Task(
            title=data.title,
            description=data.description,
            assigned_by=actor.user_id,
            assigned_by_name=actor.name,
            assigned_to=assignee.id,
            assigned_to_name=assignee.name,
            assigned_to_role=assignee.role,
            status=TaskStatus.pending,
            priority=data.priority,
            category=data.category,
            form_data=data.form.model_dump(mode="json"),
            attachments=self._stamp_files(data.attachments, actor, now),
            response_files=[],
            estimated_hours=data.estimated_hours,
            due_date=data.due_date,
            created_at=now,
            updated_at=now,
            version=1,
        )

        try:
            self.store.insert_task(task, data.tags)
            entries = [
                self.activity.append(
                    task.id, ActivityAction.created, actor, now,
                    comment=f"Task created and assigned to {assignee.name}",
                ),
                self.activity.append(
                    task.id, ActivityAction.assigned, actor, now,
                    comment=f"Task assigned to {assignee.name} ({assignee.role.value})",
                    details={"assigned_to": assignee.id},
                ),
            ]
            self.store.commit()
        except SQLAlchemyError:
            self.store.rollback()
            logger.exception(f"Failed to create task '{data.title}' for user {assignee.id}")
            raise

        self.store.refresh(task)
        response = TaskResponse.model_validate(task)
        self.activity.dispatch(response, entries)
        logger.info(f"Task {task.id} created by user {actor.user_id} for user {assignee.id}")
        return response

    # =========================================================
    # READ
    # =========================================================
    def get_tasks_for_gm(self, actor: Actor, query: Optional[TaskQuery] = None) -> TaskPage:
        """Manager view: every task in the system."""
        require(actor.role, Capability.view_all_tasks, "view all tasks")
        query = query or TaskQuery()
        tasks, total, pagination = fetch_page(self.store, query)
        return TaskPage(
            tasks=[TaskResponse.model_validate(t) for t in tasks],
            total=total,
            pagination=pagination,
        )

    def get_tasks_for_user(self, actor: Actor, query: Optional[TaskQuery] = None) -> TaskPage:
        """Assignee view: only tasks assigned to the actor."""
        query = query or TaskQuery()
        tasks, total, pagination = fetch_page(self.store, query, assignee_id=actor.user_id)
        return TaskPage(
            tasks=[TaskResponse.model_validate(t) for t in tasks],
            total=total,
            pagination=pagination,
        )

    def get_task_by_id(self, actor: Actor, task_id: int, track_view: bool = True) -> TaskResponse:
        task = self._load_task(task_id)
        if not self._can_read(actor, task):
            raise PermissionDenied("Access denied to this task")

        if track_view and task.assigned_by != actor.user_id:
            return self._append_view(actor, task)
        return TaskResponse.model_validate(task)

    def record_task_view(self, actor: Actor, task_id: int) -> TaskResponse:
        """Explicitly append a VIEWED entry for a task the actor can read."""
        task = self._load_task(task_id)
        if not self._can_read(actor, task):
            raise PermissionDenied("Access denied to this task")
        return self._append_view(actor, task)

    def _append_view(self, actor: Actor, task: Task) -> TaskResponse:
        snapshot = TaskResponse.model_validate(task)
        try:
            entry = self.activity.append(task.id, ActivityAction.viewed, actor, self.clock(), comment="Task viewed")
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error(f"VIEWED entry for task {task.id} by user {actor.user_id} was not recorded: {e}")
            raise AuditDegraded(snapshot, e)

        self.store.refresh(task)
        response = TaskResponse.model_validate(task)
        self.activity.dispatch(response, [entry])
        return response

    # =========================================================
    # TRANSITIONS
    # =========================================================
    def update_task_status(self, actor: Actor, task_id: int, update: TaskStatusUpdate) -> TaskResponse:
        """Move a task to IN_PROGRESS or CANCELLED."""
        target = update.status
        if target not in DIRECT_STATUS_TARGETS:
            raise ValidationError(
                f"Status {target.value} cannot be set directly; submit or complete the task instead",
                fields=["status"],
            )

        task = self._load_task(task_id)
        is_party = actor.user_id in (task.assigned_to, task.assigned_by)
        if target == TaskStatus.cancelled:
            allowed = is_party or has_permission(actor.role, Capability.assign_tasks)
        else:
            allowed = is_party
        if not allowed:
            raise PermissionDenied("Insufficient permissions to update this task")

        current = task.status
        check_transition(current, target)

        return self._commit_change(
            task, actor, current,
            values={"status": target},
            action=action_for(target),
            comment=update.comment or f"Status changed to {target.value}",
            details={"from": current.value, "to": target.value},
        )

    def submit_task_response(self, actor: Actor, task_id: int, submission: TaskSubmission) -> TaskResponse:
        task = self._load_task(task_id)
        if task.assigned_to != actor.user_id:
            raise PermissionDenied("You can only submit tasks assigned to you")

        current = task.status
        check_transition(current, TaskStatus.submitted)
        check_response(TaskForm.model_validate(task.form_data), submission.response)

        now = self.clock()
        values = {
            "status": TaskStatus.submitted,
            "employee_response": submission.model_dump(mode="json")["response"],
            "response_files": self._stamp_files(submission.files, actor, now),
            "submitted_at": now,
        }
        if submission.actual_hours is not None:
            values["actual_hours"] = submission.actual_hours

        return self._commit_change(
            task, actor, current,
            values=values,
            action=ActivityAction.submitted,
            comment=submission.comment or "Task submitted for review",
            details={
                "files_uploaded": len(submission.files),
                "fields_completed": len(submission.response),
            },
        )

    def review_task(self, actor: Actor, task_id: int, review: TaskReview) -> TaskResponse:
        """Record a review comment on a submitted task without completing it."""
        require(actor.role, Capability.assign_tasks, "review tasks")
        if not review.comment or not review.comment.strip():
            raise ValidationError("A review comment is required", fields=["comment"])

        task = self._load_task(task_id)
        if task.status != TaskStatus.submitted:
            raise InvalidStateTransition(
                task.status, TaskStatus.submitted, "Only submitted tasks can be reviewed"
            )

        return self._commit_change(
            task, actor, TaskStatus.submitted,
            values={},
            action=ActivityAction.reviewed,
            comment=review.comment.strip(),
        )

    def review_and_complete_task(self, actor: Actor, task_id: int, review: Optional[TaskReview] = None) -> TaskResponse:
        require(actor.role, Capability.assign_tasks, "complete tasks")

        task = self._load_task(task_id)
        current = task.status
        check_transition(current, TaskStatus.completed)

        comment = review.comment.strip() if review and review.comment and review.comment.strip() else None
        now = self.clock()
        return self._commit_change(
            task, actor, current,
            values={"status": TaskStatus.completed, "completed_at": now},
            action=ActivityAction.completed,
            comment=comment or "Task marked as completed",
            details={"review_comment": comment} if comment else None,
        )

    # =========================================================
    # DASHBOARD
    # =========================================================
    def get_task_statistics(self, actor: Actor) -> TaskStatistics:
        if has_permission(actor.role, Capability.view_all_tasks):
            return compute_statistics(self.store, self.clock())
        return compute_statistics(self.store, self.clock(), assignee_id=actor.user_id)

    def get_task_analytics(self, actor: Actor) -> TaskAnalytics:
        """Breakdowns and completion metrics, system-wide for managers and per assignee otherwise."""
        if has_permission(actor.role, Capability.view_all_tasks):
            return compute_analytics(self.store, self.clock())
        return compute_analytics(self.store, self.clock(), assignee_id=actor.user_id)

    def get_available_users(self, actor: Actor) -> List[AvailableUser]:
        require(actor.role, Capability.assign_tasks, "view users for assignment")
        return [AvailableUser.model_validate(u) for u in self.store.list_active_users()]

    def export_tasks(
        self,
        actor: Actor,
        filters: Optional[TaskFilters] = None,
        fmt: ExportFormat = ExportFormat.json,
    ) -> Union[str, List[dict]]:
        require(actor.role, Capability.view_all_tasks, "export tasks")
        tasks = fetch_all(self.store, filters or TaskFilters())
        logger.info(f"User {actor.user_id} exported {len(tasks)} tasks as {ExportFormat(fmt).value}")
        return render(tasks, fmt)

