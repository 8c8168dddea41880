from .enums import TaskStatus, ActivityAction
from .errors import InvalidStateTransition

S = TaskStatus

ALLOWED_TRANSITIONS = {
    S.pending: frozenset({S.in_progress, S.submitted, S.cancelled}),
    S.in_progress: frozenset({S.submitted, S.cancelled}),
    S.submitted: frozenset({S.completed}),
    S.completed: frozenset(),
    S.cancelled: frozenset(),
}

TERMINAL_STATES = frozenset({S.completed, S.cancelled})

_ACTIONS = {
    S.in_progress: ActivityAction.in_progress,
    S.submitted: ActivityAction.submitted,
    S.completed: ActivityAction.completed,
    S.cancelled: ActivityAction.cancelled,
}

def is_terminal(status: TaskStatus) -> bool:
    return TaskStatus(status) in TERMINAL_STATES

def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return TaskStatus(target) in ALLOWED_TRANSITIONS[TaskStatus(current)]

def check_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise InvalidStateTransition unless current -> target is an edge"""
    current, target = TaskStatus(current), TaskStatus(target)
    if can_transition(current, target):
        return
    if current in TERMINAL_STATES:
        message = f"Task is {current.value} and can no longer change"
    elif current == S.submitted:
        message = "Task is submitted and awaiting review"
    else:
        message = None
    raise InvalidStateTransition(current, target, message)

def action_for(target: TaskStatus) -> ActivityAction:
    """Activity entry appended when a task enters target"""
    return _ACTIONS[TaskStatus(target)]
