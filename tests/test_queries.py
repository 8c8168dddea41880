from datetime import datetime, timedelta

import pydantic
import pytest
from sqlalchemy import event

from taskhub.config import config
from taskhub.enums import SortOrder, TaskPriority, TaskSortField, TaskStatus
from taskhub.errors import PermissionDenied
from taskhub.models import Task, TaskTag
from taskhub.schemas import TaskFilters, TaskQuery

from .conftest import actor_for

BASE = datetime(2026, 1, 1, 8, 0, 0)


@pytest.fixture
def seed(db, gm, officer, other_officer):
    """Insert tasks directly, bypassing the lifecycle, for query tests"""
    def _seed(n=1, assignee=None, status=TaskStatus.pending, priority=TaskPriority.medium,
              due_date=None, tags=(), title=None, description="Routine task", offset=0):
        assignee = assignee or officer
        created = []
        for i in range(n):
            task = Task(
                title=title or f"Task {offset + i:03d}",
                description=description,
                assigned_by=gm.id,
                assigned_by_name=gm.name,
                assigned_to=assignee.id,
                assigned_to_name=assignee.name,
                assigned_to_role=assignee.role,
                status=status,
                priority=priority,
                form_data={"title": "", "description": "", "fields": []},
                attachments=[],
                response_files=[],
                due_date=due_date(i) if callable(due_date) else due_date,
                created_at=BASE + timedelta(minutes=offset + i),
                updated_at=BASE + timedelta(minutes=offset + i),
                version=1,
            )
            db.add(task)
            db.flush()
            for tag in tags:
                db.add(TaskTag(task_id=task.id, tag=tag))
            created.append(task)
        db.commit()
        return created
    return _seed


def ids(page):
    return [t.id for t in page.tasks]


def test_pages_partition_the_result(service, seed, gm):
    seed(23)
    actor = actor_for(gm)
    seen = []
    for number in (1, 2, 3):
        page = service.get_tasks_for_gm(actor, TaskQuery(page=number, page_size=10, sort_by=TaskSortField.title))
        assert page.total == 23
        seen.extend(ids(page))

    assert len(seen) == 23
    assert len(set(seen)) == 23
    last = service.get_tasks_for_gm(actor, TaskQuery(page=3, page_size=10))
    assert len(last.tasks) == 3
    assert last.pagination.total_pages == 3
    assert not last.pagination.has_next
    assert last.pagination.has_prev


def test_ties_are_broken_by_id(service, seed, gm):
    seed(6, title="Same title")
    actor = actor_for(gm)
    first = service.get_tasks_for_gm(actor, TaskQuery(page=1, page_size=3, sort_by=TaskSortField.title))
    second = service.get_tasks_for_gm(actor, TaskQuery(page=2, page_size=3, sort_by=TaskSortField.title))
    assert ids(first) + ids(second) == sorted(ids(first) + ids(second))


def test_page_past_the_end_is_empty(service, seed, gm):
    seed(4)
    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(page=5, page_size=10))
    assert page.tasks == []
    assert page.total == 4
    assert page.pagination.has_prev


def test_completed_urgent_second_page_by_due_date(service, seed, gm):
    seed(15, status=TaskStatus.completed, priority=TaskPriority.urgent,
         due_date=lambda i: BASE + timedelta(days=15 - i))
    seed(5, status=TaskStatus.completed, priority=TaskPriority.low, offset=100)
    seed(5, status=TaskStatus.pending, priority=TaskPriority.urgent, offset=200)

    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(
        page=2, page_size=10,
        sort_by=TaskSortField.due_date, sort_order=SortOrder.asc,
        filters=TaskFilters(status=TaskStatus.completed, priority=TaskPriority.urgent),
    ))

    assert page.total == 15
    assert len(page.tasks) == 5
    assert page.pagination.has_prev
    assert not page.pagination.has_next
    assert all(t.status == TaskStatus.completed and t.priority == TaskPriority.urgent for t in page.tasks)
    dues = [t.due_date for t in page.tasks]
    assert dues == sorted(dues)


def test_missing_due_dates_sort_last(service, seed, gm):
    seed(2, due_date=None, title="No deadline")
    seed(2, due_date=lambda i: BASE + timedelta(days=i), title="Deadline", offset=10)

    for order in (SortOrder.asc, SortOrder.desc):
        page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(sort_by=TaskSortField.due_date, sort_order=order))
        assert [t.due_date is None for t in page.tasks] == [False, False, True, True]


def test_priority_sorts_by_rank_not_name(service, seed, gm):
    for offset, priority in enumerate([TaskPriority.low, TaskPriority.urgent, TaskPriority.medium, TaskPriority.high]):
        seed(1, priority=priority, offset=offset)

    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(sort_by=TaskSortField.priority, sort_order=SortOrder.desc))
    assert [t.priority for t in page.tasks] == [
        TaskPriority.urgent, TaskPriority.high, TaskPriority.medium, TaskPriority.low,
    ]


def test_default_sort_is_newest_first(service, seed, gm):
    seed(3)
    page = service.get_tasks_for_gm(actor_for(gm))
    created = [t.created_at for t in page.tasks]
    assert created == sorted(created, reverse=True)


def test_search_covers_title_description_assignee_and_tags(service, seed, gm, other_officer):
    seed(1, title="Water tanks", offset=0)
    seed(1, description="Deliver WATER filters", offset=1)
    seed(1, assignee=other_officer, offset=2)
    seed(1, tags=["watershed"], offset=3)
    seed(1, title="Unrelated", offset=4)

    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(filters=TaskFilters(search="water")))
    assert page.total == 3

    by_name = service.get_tasks_for_gm(actor_for(gm), TaskQuery(filters=TaskFilters(search="lina")))
    assert by_name.total == 1
    assert by_name.tasks[0].assigned_to == other_officer.id


def test_search_wildcards_are_literal(service, seed, gm):
    seed(1, title="100% complete")
    seed(1, title="1000 parcels", offset=1)
    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(filters=TaskFilters(search="0%")))
    assert [t.title for t in page.tasks] == ["100% complete"]


def test_tag_filter_matches_any_tag(service, seed, gm):
    seed(2, tags=["food"])
    seed(1, tags=["health", "food"], offset=10)
    seed(1, tags=["shelter"], offset=20)
    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(filters=TaskFilters(tags=["food", "health"])))
    assert page.total == 3


def test_created_range_filter(service, seed, gm):
    seed(10)
    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(filters=TaskFilters(
        created_from=BASE + timedelta(minutes=2),
        created_to=BASE + timedelta(minutes=5),
    )))
    assert page.total == 4


def test_assigned_filters_in_manager_view(service, seed, gm, officer, other_officer):
    seed(3)
    seed(2, assignee=other_officer, offset=10)
    page = service.get_tasks_for_gm(actor_for(gm), TaskQuery(filters=TaskFilters(assigned_to=other_officer.id)))
    assert page.total == 2
    assert service.get_tasks_for_gm(
        actor_for(gm), TaskQuery(filters=TaskFilters(assigned_by=gm.id))
    ).total == 5


def test_assignee_view_only_shows_own_tasks(service, seed, officer, other_officer):
    mine = seed(3)
    seed(4, assignee=other_officer, offset=10)

    page = service.get_tasks_for_user(actor_for(officer), TaskQuery(
        filters=TaskFilters(assigned_to=other_officer.id),
    ))
    assert page.total == 3
    assert set(ids(page)) == {t.id for t in mine}


def test_manager_view_needs_view_all(service, officer):
    with pytest.raises(PermissionDenied):
        service.get_tasks_for_gm(actor_for(officer))


def test_page_size_is_bounded():
    with pytest.raises(pydantic.ValidationError):
        TaskQuery(page_size=config.MAX_PAGE_SIZE + 1)
    with pytest.raises(pydantic.ValidationError):
        TaskQuery(page=0)
    assert TaskQuery().page_size == config.DEFAULT_PAGE_SIZE


def test_export_csv_and_json(service, seed, gm, officer):
    seed(2, tags=["food", "water"])
    csv_text = service.export_tasks(actor_for(gm), fmt="csv")
    lines = csv_text.strip().splitlines()
    assert lines[0].startswith("id,title,status,priority")
    assert len(lines) == 3
    assert "food;water" in lines[1]

    rows = service.export_tasks(actor_for(gm), TaskFilters(status=TaskStatus.pending), fmt="json")
    assert len(rows) == 2
    assert rows[0]["tags"] == ["food", "water"]
    assert "activities" not in rows[0]

    with pytest.raises(PermissionDenied):
        service.export_tasks(actor_for(officer))


def test_json_export_query_count_does_not_grow_with_tasks(service, seed, engine, gm):
    seed(8, tags=["food"])
    statements = []

    def count(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", count)
    try:
        rows = service.export_tasks(actor_for(gm), fmt="json")
    finally:
        event.remove(engine, "before_cursor_execute", count)

    assert len(rows) == 8
    # tasks plus one batched load of their tags
    assert len(statements) <= 3
    assert not any("task_activities" in s for s in statements)
