import csv
import io
from typing import List, Union

from .enums import ExportFormat
from .models import Task
from .schemas import TaskSummary

CSV_COLUMNS = [
    "id", "title", "status", "priority", "category", "tags",
    "assigned_to", "assigned_to_name", "assigned_by", "assigned_by_name",
    "due_date", "created_at", "submitted_at", "completed_at",
    "estimated_hours", "actual_hours",
]


def _cell(value):
    if value is None:
        return ""
    if isinstance(value, list):
        return ";".join(value)
    return getattr(value, "value", value)


def tasks_to_csv(tasks: List[Task]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for task in tasks:
        row = []
        for column in CSV_COLUMNS:
            value = getattr(task, column)
            if hasattr(value, "isoformat"):
                value = value.isoformat()
            row.append(_cell(value))
        writer.writerow(row)
    return buffer.getvalue()


def tasks_to_json(tasks: List[Task]) -> List[dict]:
    return [
        TaskSummary.model_validate(task).model_dump(mode="json")
        for task in tasks
    ]


def render(tasks: List[Task], fmt: ExportFormat) -> Union[str, List[dict]]:
    if ExportFormat(fmt) == ExportFormat.csv:
        return tasks_to_csv(tasks)
    return tasks_to_json(tasks)
