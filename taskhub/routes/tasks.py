from typing import List, Optional
from datetime import datetime
import pydantic
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..dependencies import get_current_actor, get_task_service
from ..enums import ExportFormat, SortOrder, TaskPriority, TaskSortField, TaskStatus
from ..schemas import (
    Actor, TaskAnalytics, TaskCreate, TaskFilters, TaskPage, TaskQuery, TaskResponse, TaskReview,
    TaskStatistics, TaskStatusUpdate, TaskSubmission,
)
from ..task_service import TaskService

router = APIRouter()

def task_filters(
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    assigned_to: Optional[int] = Query(None),
    assigned_by: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    tags: List[str] = Query([]),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None),
) -> TaskFilters:
    try:
        return TaskFilters(
            status=status, priority=priority, assigned_to=assigned_to, assigned_by=assigned_by,
            category=category, tags=tags, created_from=created_from, created_to=created_to,
            search=search,
        )
    except pydantic.ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

def task_query(
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
    sort_by: TaskSortField = Query(TaskSortField.created_at),
    sort_order: SortOrder = Query(SortOrder.desc),
    filters: TaskFilters = Depends(task_filters),
) -> TaskQuery:
    params = {"page": page, "sort_by": sort_by, "sort_order": sort_order, "filters": filters}
    if page_size is not None:
        params["page_size"] = page_size
    try:
        return TaskQuery(**params)
    except pydantic.ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

# =========================================================
# TASK ENDPOINTS
# =========================================================
@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_data: TaskCreate,
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.create_task(actor, task_data)

@router.get("/", response_model=TaskPage)
def get_all_tasks(
    query: TaskQuery = Depends(task_query),
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.get_tasks_for_gm(actor, query)

@router.get("/mine", response_model=TaskPage)
def get_my_tasks(
    query: TaskQuery = Depends(task_query),
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.get_tasks_for_user(actor, query)

@router.get("/statistics", response_model=TaskStatistics)
def get_statistics(
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.get_task_statistics(actor)

@router.get("/analytics", response_model=TaskAnalytics)
def get_analytics(
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.get_task_analytics(actor)

@router.get("/export")
def export_tasks(
    format: ExportFormat = Query(ExportFormat.json),
    filters: TaskFilters = Depends(task_filters),
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    result = service.export_tasks(actor, filters, format)
    if format == ExportFormat.csv:
        return Response(
            content=result,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="tasks.csv"'},
        )
    return result

@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.get_task_by_id(actor, task_id)

@router.post("/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    task_id: int,
    update: TaskStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.update_task_status(actor, task_id, update)

@router.post("/{task_id}/submit", response_model=TaskResponse)
def submit_task(
    task_id: int,
    submission: TaskSubmission,
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.submit_task_response(actor, task_id, submission)

@router.post("/{task_id}/review", response_model=TaskResponse)
def review_task(
    task_id: int,
    review: TaskReview,
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.review_task(actor, task_id, review)

@router.post("/{task_id}/complete", response_model=TaskResponse)
def complete_task(
    task_id: int,
    review: TaskReview,
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service)
):
    return service.review_and_complete_task(actor, task_id, review)
