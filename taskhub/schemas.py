import re
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import config
from .enums import (
    Role, TaskStatus, TaskPriority, FieldType, ActivityAction, TaskSortField, SortOrder,
)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

CHOICE_FIELD_TYPES = {FieldType.select, FieldType.radio, FieldType.checkbox}

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store and compare every timestamp as naive UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

# =========================================================
# PYDANTIC SCHEMAS
# =========================================================

# Form Schemas
class FieldRules(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v):
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid pattern: {e}")
        return v

    @model_validator(mode="after")
    def min_not_above_max(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("min must not exceed max")
        return self

class FormField(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    type: FieldType
    label: str = Field(..., min_length=1, max_length=200)
    placeholder: Optional[str] = None
    required: bool = False
    options: Optional[List[str]] = None
    validation: Optional[FieldRules] = None

    @model_validator(mode="after")
    def choices_have_options(self):
        if self.type in CHOICE_FIELD_TYPES and not self.options:
            raise ValueError(f"field '{self.id}' of type {self.type.value} needs options")
        return self

class TaskForm(BaseModel):
    title: str = ""
    description: str = ""
    fields: List[FormField] = []
    instructions: Optional[str] = None

    @field_validator("fields")
    @classmethod
    def unique_field_ids(cls, v):
        seen = set()
        for field in v:
            if field.id in seen:
                raise ValueError(f"duplicate form field id '{field.id}'")
            seen.add(field.id)
        return v

# File Schemas
class StoredFile(BaseModel):
    """Descriptor returned by the upload layer"""
    id: str
    filename: str
    url: str
    size: int = Field(..., ge=0)
    mime_type: str
    uploaded_by: Optional[int] = None
    uploaded_at: Optional[datetime] = None

# Task Schemas
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    assigned_to: int
    priority: TaskPriority = TaskPriority.medium
    form: TaskForm = Field(default_factory=TaskForm)
    attachments: List[StoredFile] = []
    category: Optional[str] = Field(None, max_length=100)
    tags: List[str] = []
    estimated_hours: Optional[float] = Field(None, ge=0)
    due_date: Optional[datetime] = None

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        tags = []
        for tag in v:
            tag = tag.strip()
            if len(tag) > 100:
                raise ValueError("tags are limited to 100 characters")
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v):
        return _naive_utc(v)

class TaskSubmission(BaseModel):
    response: Dict[str, Any]
    files: List[StoredFile] = []
    actual_hours: Optional[float] = Field(None, ge=0)
    comment: Optional[str] = Field(None, max_length=2000)

class TaskStatusUpdate(BaseModel):
    status: TaskStatus
    comment: Optional[str] = Field(None, max_length=2000)

class TaskReview(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)

class TaskFilters(BaseModel):
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[int] = None
    assigned_by: Optional[int] = None
    category: Optional[str] = None
    tags: List[str] = []
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    search: Optional[str] = Field(None, max_length=200)

    @field_validator("created_from", "created_to")
    @classmethod
    def range_utc(cls, v):
        return _naive_utc(v)

    @model_validator(mode="after")
    def range_ordered(self):
        if self.created_from and self.created_to and self.created_from > self.created_to:
            raise ValueError("created_from must not be after created_to")
        return self

class TaskQuery(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(default_factory=lambda: config.DEFAULT_PAGE_SIZE, ge=1)
    sort_by: TaskSortField = TaskSortField.created_at
    sort_order: SortOrder = SortOrder.desc
    filters: TaskFilters = Field(default_factory=TaskFilters)

    @field_validator("page_size")
    @classmethod
    def page_size_capped(cls, v):
        if v > config.MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be at most {config.MAX_PAGE_SIZE}")
        return v

class Pagination(BaseModel):
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_prev: bool

class ActivityResponse(BaseModel):
    id: int
    action: ActivityAction
    performed_by: int
    performed_by_role: Role
    timestamp: datetime
    comment: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)

class TaskSummary(BaseModel):
    """Task fields without the activity log, as exported"""
    id: int
    title: str
    description: str
    assigned_by: int
    assigned_by_name: str
    assigned_to: int
    assigned_to_name: str
    assigned_to_role: Role
    status: TaskStatus
    priority: TaskPriority
    category: Optional[str]
    tags: List[str] = []
    form_data: TaskForm
    employee_response: Optional[Dict[str, Any]]
    attachments: List[StoredFile] = []
    response_files: List[StoredFile] = []
    estimated_hours: Optional[float]
    actual_hours: Optional[float]
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime]
    completed_at: Optional[datetime]
    version: int

    model_config = ConfigDict(from_attributes=True)

    @field_validator("attachments", "response_files", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []

class TaskResponse(TaskSummary):
    activities: List[ActivityResponse] = []

class TaskPage(BaseModel):
    tasks: List[TaskResponse]
    total: int
    pagination: Pagination

class TaskStatistics(BaseModel):
    total: int
    pending: int
    in_progress: int
    submitted: int
    completed: int
    cancelled: int
    overdue: int
    my_tasks_only: Optional[int] = None

class TaskAnalytics(BaseModel):
    total: int
    completed: int
    pending: int
    overdue: int
    by_status: Dict[TaskStatus, int]
    by_priority: Dict[TaskPriority, int]
    # percentage of tasks that are COMPLETED, 0-100
    completion_rate: float
    # mean of completed_at - created_at over COMPLETED tasks, in days
    average_completion_days: float
    my_tasks_only: Optional[int] = None

# User Schemas
class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255)
    role: Role = Role.user
    department: Optional[str] = Field(None, max_length=100)

    @field_validator("email")
    @classmethod
    def email_shape(cls, v):
        v = v.strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("not a valid email address")
        return v

class RoleUpdate(BaseModel):
    role: Role

class ActiveUpdate(BaseModel):
    is_active: bool

class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    is_active: bool
    department: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class AvailableUser(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    department: Optional[str]

    model_config = ConfigDict(from_attributes=True)

class Actor(BaseModel):
    """Already-authenticated caller, as supplied by the auth layer"""
    user_id: int
    role: Role
    name: str

    model_config = ConfigDict(frozen=True)
