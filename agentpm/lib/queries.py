"""
Read-only views of an epic for status, current, pending, failing, events
and show. Each function returns a plain dict payload; commands render it.
"""

from typing import Optional

from agentpm.lib.suggest import not_found
from agentpm.lib.timeutil import format_timestamp
from agentpm.model.document import Epic, Event, Phase, Task, Test
from agentpm.workflow.status import Status, TestState


def _ts(value) -> Optional[str]:
    return format_timestamp(value) or None


def describe_phase(phase: Phase) -> dict:
    return {
        "id": phase.id,
        "name": phase.name,
        "status": phase.status.value,
        "description": phase.description or None,
        "deliverables": phase.deliverables or None,
        "started_at": _ts(phase.started_at),
        "completed_at": _ts(phase.completed_at),
    }


def describe_task(task: Task) -> dict:
    return {
        "id": task.id,
        "phase_id": task.phase_id,
        "name": task.name,
        "status": task.status.value,
        "assignee": task.assignee or None,
        "description": task.description or None,
        "acceptance_criteria": task.acceptance_criteria or None,
        "started_at": _ts(task.started_at),
        "completed_at": _ts(task.completed_at),
        "cancelled_at": _ts(task.cancelled_at),
    }


def describe_test(test: Test) -> dict:
    return {
        "id": test.id,
        "task_id": test.task_id,
        "phase_id": test.phase_id,
        "name": test.name,
        "test_status": test.status.value,
        "test_result": test.result or None,
        "description": test.description or None,
        "started_at": _ts(test.started_at),
        "passed_at": _ts(test.passed_at),
        "failed_at": _ts(test.failed_at),
        "cancelled_at": _ts(test.cancelled_at),
        "failure_note": test.failure_note or None,
        "cancellation_reason": test.cancellation_reason or None,
    }


def describe_event(event: Event) -> dict:
    return {
        "id": event.id,
        "type": event.type,
        "timestamp": _ts(event.timestamp),
        "entity_id": event.entity_id or None,
        "data": event.data,
    }


def _percent(done: int, total: int) -> int:
    return int(done * 100 / total) if total else 0


def status_summary(epic: Epic) -> dict:
    """Overall progress of the epic."""
    tasks = [t for t in epic.tasks if t.status != Status.CANCELLED]
    tasks_done = sum(1 for t in tasks if t.status == Status.DONE)
    phases_done = sum(1 for p in epic.phases if p.status == Status.DONE)
    passing = sum(1 for t in epic.tests if t.state == TestState.PASSING)
    failing = sum(1 for t in epic.tests if t.state == TestState.FAILING)

    return {
        "epic": {
            "id": epic.id,
            "name": epic.name,
            "status": epic.status.value,
            "paused": epic.is_paused,
            "assignee": epic.assignee or None,
        },
        "progress": {
            "phases_total": len(epic.phases),
            "phases_done": phases_done,
            "tasks_total": len(tasks),
            "tasks_done": tasks_done,
            "tests_total": len(epic.tests),
            "tests_passing": passing,
            "tests_failing": failing,
            "completion_percent": _percent(tasks_done, len(tasks)),
        },
        "current_state": {
            "active_phase": epic.current_state.active_phase or None,
            "active_task": epic.current_state.active_task or None,
            "next_action": epic.current_state.next_action or None,
        },
        "phases": [
            {
                "id": p.id,
                "name": p.name,
                "status": p.status.value,
                "tasks_done": sum(1 for t in epic.tasks_in(p.id) if t.status == Status.DONE),
                "tasks_total": len(epic.tasks_in(p.id)),
            }
            for p in epic.phases
        ],
    }


def current_work(epic: Epic) -> dict:
    """The active phase, the active task and its unfinished tests."""
    phase = epic.active_phase()
    task = epic.active_task_in(phase) if phase is not None else None
    open_tests = []
    if task is not None:
        open_tests = [
            {"id": t.id, "name": t.name, "status": t.state.label}
            for t in epic.tests_for_task(task.id)
            if not t.state.is_terminal
        ]
    return {
        "epic_status": epic.status.value,
        "active_phase": {"id": phase.id, "name": phase.name} if phase else None,
        "active_task": {"id": task.id, "name": task.name} if task else None,
        "open_tests": open_tests,
        "failing_tests": [t.id for t in epic.failing_tests()],
        "next_action": epic.current_state.next_action or None,
    }


def pending_work(epic: Epic) -> dict:
    """Everything not yet finished, in document order."""
    return {
        "phases": [{"id": p.id, "name": p.name, "status": p.status.value}
                   for p in epic.phases if p.status in (Status.PENDING, Status.WIP)],
        "tasks": [{"id": t.id, "phase_id": t.phase_id, "name": t.name, "status": t.status.value}
                  for t in epic.tasks if t.status in (Status.PENDING, Status.WIP)],
        "tests": [{"id": t.id, "task_id": t.task_id, "name": t.name, "status": t.state.value}
                  for t in epic.tests if not t.state.is_terminal],
    }


def failing_report(epic: Epic) -> dict:
    return {
        "tests": [
            {
                "id": t.id,
                "task_id": t.task_id,
                "phase_id": t.phase_id,
                "name": t.name,
                "failed_at": _ts(t.failed_at),
                "failure_note": t.failure_note or None,
            }
            for t in epic.failing_tests()
        ]
    }


def recent_events(epic: Epic, limit: Optional[int] = None, event_type: Optional[str] = None) -> list[Event]:
    """Most recent events first."""
    events = [e for e in epic.events if not event_type or e.type == event_type]
    events = list(reversed(events))
    if limit is not None and limit > 0:
        events = events[:limit]
    return events


def show_entity(epic: Epic, kind: str, entity_id: str, full: bool = False) -> dict:
    """Context for one phase, task or test.

    Raises:
        NotFoundError: Unknown ID
    """
    entity = epic.find(kind, entity_id)
    if entity is None or kind == "epic":
        raise not_found(kind, entity_id, epic.ids(kind))

    if kind == "phase":
        payload = {"phase": describe_phase(entity)}
        payload["tasks"] = [describe_task(t) if full else {"id": t.id, "name": t.name, "status": t.status.value}
                            for t in epic.tasks_in(entity.id)]
        if full:
            payload["tests"] = [describe_test(t) for t in epic.tests_in_phase(entity.id)]
    elif kind == "task":
        phase = epic.find_phase(entity.phase_id)
        payload = {"task": describe_task(entity)}
        payload["phase"] = {"id": phase.id, "name": phase.name, "status": phase.status.value} if phase else None
        payload["tests"] = [describe_test(t) if full else {"id": t.id, "name": t.name, "status": t.state.label}
                            for t in epic.tests_for_task(entity.id)]
        if full:
            payload["siblings"] = [{"id": t.id, "name": t.name, "status": t.status.value}
                                   for t in epic.tasks_in(entity.phase_id) if t.id != entity.id]
    else:
        task = epic.find_task(entity.task_id)
        payload = {"test": describe_test(entity)}
        payload["task"] = {"id": task.id, "name": task.name, "status": task.status.value} if task else None

    if full:
        related = {entity.id}
        if kind == "phase":
            related.update(t.id for t in epic.tasks_in(entity.id))
            related.update(t.id for t in epic.tests_in_phase(entity.id))
        elif kind == "task":
            related.update(t.id for t in epic.tests_for_task(entity.id))
        payload["events"] = [describe_event(e) for e in epic.events if e.entity_id in related]

    return payload
