from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Float, ForeignKey, JSON, Enum as SQLEnum, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .database import Base
from .enums import Role, TaskStatus, TaskPriority, ActivityAction

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB, "postgresql")

def _enum_column(enum_cls):
    """Persist enum values (e.g. "ME") rather than member names"""
    return SQLEnum(enum_cls, values_callable=lambda members: [m.value for m in members], native_enum=False, length=32)

# =========================================================
# DATABASE MODELS
# =========================================================
class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(_enum_column(Role), nullable=False, default=Role.user)
    is_active = Column(Boolean, nullable=False, default=True)
    department = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tasks_created = relationship("Task", back_populates="creator", foreign_keys="Task.assigned_by")
    tasks_assigned = relationship("Task", back_populates="assignee", foreign_keys="Task.assigned_to")

class Task(Base):
    __tablename__ = "tasks"
    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)

    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_by_name = Column(String(100), nullable=False)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_to_name = Column(String(100), nullable=False)
    assigned_to_role = Column(_enum_column(Role), nullable=False)

    status = Column(_enum_column(TaskStatus), nullable=False, default=TaskStatus.pending)
    priority = Column(_enum_column(TaskPriority), nullable=False, default=TaskPriority.medium)
    category = Column(String(100))

    form_data = Column(JSONType, nullable=False)
    employee_response = Column(JSONType)
    attachments = Column(JSONType, default=list)
    response_files = Column(JSONType, default=list)

    estimated_hours = Column(Float)
    actual_hours = Column(Float)
    due_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    submitted_at = Column(DateTime)
    completed_at = Column(DateTime)

    # Bumped by every conditional update
    version = Column(Integer, nullable=False, default=1)

    creator = relationship("User", back_populates="tasks_created", foreign_keys=[assigned_by])
    assignee = relationship("User", back_populates="tasks_assigned", foreign_keys=[assigned_to])
    tag_rows = relationship("TaskTag", back_populates="task", order_by="TaskTag.id")
    activities = relationship("TaskActivity", back_populates="task", order_by="TaskActivity.id")

    @property
    def tags(self):
        return [row.tag for row in self.tag_rows]

    __table_args__ = (
        Index("ix_tasks_status", "status"),
        Index("ix_tasks_assigned_to_status", "assigned_to", "status"),
    )

class TaskTag(Base):
    __tablename__ = "task_tags"
    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    tag = Column(String(100), nullable=False, index=True)

    task = relationship("Task", back_populates="tag_rows")

class TaskActivity(Base):
    """One audit entry. Rows are only ever inserted."""
    __tablename__ = "task_activities"
    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    action = Column(_enum_column(ActivityAction), nullable=False)
    performed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    performed_by_role = Column(_enum_column(Role), nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    comment = Column(Text)
    details = Column(JSONType)

    task = relationship("Task", back_populates="activities")
