from prometheus_client import Counter

TASK_ACTIVITY_COUNT = Counter(
    "task_activity_events_total",
    "Task activity entries committed",
    ["action", "role"]
)

def record_task_activity(task, entry):
    """Activity listener feeding the task event counter"""
    TASK_ACTIVITY_COUNT.labels(action=entry.action.value, role=entry.performed_by_role.value).inc()
