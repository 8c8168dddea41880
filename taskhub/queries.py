"""
Filtered, sorted and paginated task retrieval.

Two audiences share one filter surface:

* the manager view sees every task and may filter by assignee/creator;
* the assignee view is pinned to ``assigned_to == requester`` and
  ignores the assignee/creator filters.

Every query is read-only. Ordering always ends with ``Task.id`` so that
pages never overlap or skip rows when sort keys tie.
"""
import math
from typing import List, Optional, Tuple

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import selectinload

from .enums import PRIORITY_RANK, SortOrder, TaskSortField
from .models import Task, TaskTag
from .schemas import Pagination, TaskFilters, TaskQuery
from .store import TaskStore

priority_rank = case(PRIORITY_RANK, value=Task.priority, else_=0)

SORT_COLUMNS = {
    TaskSortField.created_at: Task.created_at,
    TaskSortField.updated_at: Task.updated_at,
    TaskSortField.due_date: Task.due_date,
    TaskSortField.priority: priority_rank,
    TaskSortField.title: Task.title,
}


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def filter_conditions(filters: TaskFilters, assignee_id: Optional[int] = None) -> list:
    conditions = []

    if assignee_id is not None:
        conditions.append(Task.assigned_to == assignee_id)
    else:
        if filters.assigned_to is not None:
            conditions.append(Task.assigned_to == filters.assigned_to)
        if filters.assigned_by is not None:
            conditions.append(Task.assigned_by == filters.assigned_by)

    if filters.status is not None:
        conditions.append(Task.status == filters.status)
    if filters.priority is not None:
        conditions.append(Task.priority == filters.priority)
    if filters.category:
        conditions.append(Task.category == filters.category)
    if filters.tags:
        conditions.append(Task.tag_rows.any(TaskTag.tag.in_(filters.tags)))
    if filters.created_from is not None:
        conditions.append(Task.created_at >= filters.created_from)
    if filters.created_to is not None:
        conditions.append(Task.created_at <= filters.created_to)

    if filters.search and filters.search.strip():
        pattern = f"%{escape_like(filters.search.strip())}%"
        conditions.append(or_(
            Task.title.ilike(pattern, escape="\\"),
            Task.description.ilike(pattern, escape="\\"),
            Task.assigned_to_name.ilike(pattern, escape="\\"),
            Task.tag_rows.any(TaskTag.tag.ilike(pattern, escape="\\")),
        ))

    return conditions


def order_by_clause(sort_by: TaskSortField, sort_order: SortOrder) -> list:
    column = SORT_COLUMNS[sort_by]
    ordered = column.asc() if sort_order == SortOrder.asc else column.desc()
    clauses = []
    if sort_by == TaskSortField.due_date:
        # Tasks without a due date go last in both directions
        clauses.append(Task.due_date.is_(None))
    clauses.append(ordered)
    clauses.append(Task.id.asc())
    return clauses


def paginate(total: int, page: int, page_size: int) -> Pagination:
    return Pagination(
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
        has_next=page * page_size < total,
        has_prev=page > 1,
    )


def fetch_page(store: TaskStore, query: TaskQuery, assignee_id: Optional[int] = None) -> Tuple[List[Task], int, Pagination]:
    conditions = filter_conditions(query.filters, assignee_id)

    total = store.scalar(select(func.count(Task.id)).where(*conditions))

    stmt = (
        select(Task)
        .where(*conditions)
        .options(selectinload(Task.tag_rows), selectinload(Task.activities))
        .order_by(*order_by_clause(query.sort_by, query.sort_order))
        .offset((query.page - 1) * query.page_size)
        .limit(query.page_size)
    )
    tasks = store.scalars(stmt)
    return tasks, total, paginate(total, query.page, query.page_size)


def fetch_all(
    store: TaskStore,
    filters: TaskFilters,
    sort_by: TaskSortField = TaskSortField.created_at,
    sort_order: SortOrder = SortOrder.asc,
) -> List[Task]:
    stmt = (
        select(Task)
        .where(*filter_conditions(filters))
        .options(selectinload(Task.tag_rows))
        .order_by(*order_by_clause(sort_by, sort_order))
    )
    return store.scalars(stmt)
