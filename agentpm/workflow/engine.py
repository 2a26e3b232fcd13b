"""
Transition engine: apply one lifecycle transition to an epic document.

Usage:
    from agentpm.workflow.engine import apply

    result = apply(epic, "task", "1A_1", "start", timestamp)
    if not result.already_in_target:
        save_epic(epic, path)

apply() is all-or-nothing: every check runs before the first field is
written, and the event is spliced into the log only after the entity has
been updated. On error nothing changes and the error is raised.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from agentpm.model.document import Epic, Event
from agentpm.workflow.events import EVENT_TYPES, describe, make_event
from agentpm.workflow.fsm import LifecycleFSM
from agentpm.workflow.next_action import refresh
from agentpm.workflow.prerequisites import (
    TransitionCheck,
    TransitionOptions,
    check_transition,
)
from agentpm.workflow.status import Status, TestState


@dataclass
class TransitionResult:
    """What a successful apply() did."""
    kind: str
    entity_id: str
    verb: str
    from_status: str
    to_status: str
    already_in_target: bool = False
    events_appended: int = 0
    event: Optional[Event] = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind,
            "id": self.entity_id,
            "verb": self.verb,
            "from": self.from_status,
            "to": self.to_status,
            "already_in_target": self.already_in_target,
            "events_appended": self.events_appended,
        }
        if self.event is not None:
            data["event"] = self.event.type
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


def apply(
    epic: Epic,
    kind: str,
    entity_id: str,
    verb: str,
    timestamp: datetime,
    reason: Optional[str] = None,
    options: Optional[TransitionOptions] = None,
) -> TransitionResult:
    """Apply a single transition.

    Args:
        epic: Document to mutate
        kind: "epic", "phase", "task" or "test"
        entity_id: Entity ID (ignored for the epic)
        verb: start, pause, resume, complete, cancel, pass or fail
        timestamp: Stamp for status timestamps and the event
        reason: Failure note (fail) or cancellation reason (cancel)
        options: Opt-ins relaxing default prerequisites

    Returns:
        TransitionResult; already_in_target=True means nothing changed

    Raises:
        NotFoundError, InvalidTransitionError, PreconditionError
    """
    options = options or TransitionOptions()
    check = check_transition(epic, kind, entity_id, verb, reason, options)
    if check.error is not None:
        raise check.error

    result = TransitionResult(
        kind=kind,
        entity_id=check.entity_id,
        verb=verb,
        from_status=check.from_status,
        to_status=check.to_status,
    )
    if check.already_in_target:
        result.already_in_target = True
        return result

    fsm = LifecycleFSM(kind, check.from_status, allow_fail_after_pass=options.allow_fail_after_pass)
    fsm.trigger(verb)

    updates = _field_updates(check, fsm.state, timestamp, reason, options)
    event = make_event(
        epic,
        EVENT_TYPES[(kind, verb)],
        timestamp,
        describe(kind, check.entity, verb, reason),
        entity_id=check.entity_id,
    )

    for name, value in updates.items():
        setattr(check.entity, name, value)
    refresh(epic)
    epic.append_event(event)

    result.to_status = fsm.state
    result.events_appended = 1
    result.event = event
    result.warnings = _opt_in_warnings(epic, check, options)
    return result


def _field_updates(
    check: TransitionCheck,
    new_state: str,
    timestamp: datetime,
    reason: Optional[str],
    options: TransitionOptions,
) -> dict:
    """Compute every attribute write for the transition before any is made."""
    entity = check.entity
    updates: dict = {}

    if check.kind == "test":
        updates["state"] = TestState(new_state)
    else:
        updates["status"] = Status(new_state)

    note = (reason or "").strip()

    if new_state == "wip" and getattr(entity, "started_at", None) is None:
        updates["started_at"] = timestamp
    if check.kind == "task" and new_state == "wip" and not entity.assignee and options.assignee:
        updates["assignee"] = options.assignee
    if new_state == "done":
        updates["completed_at"] = timestamp
    elif new_state == "passing":
        updates["passed_at"] = timestamp
    elif new_state == "failing":
        updates["failed_at"] = timestamp
        if note:
            updates["failure_note"] = note
    elif new_state == "cancelled":
        updates["cancelled_at"] = timestamp
        if check.kind == "test":
            updates["cancellation_reason"] = note

    return updates


def _opt_in_warnings(epic: Epic, check: TransitionCheck, options: TransitionOptions) -> list[str]:
    """Warnings for prerequisites that were relaxed by an opt-in."""
    warnings = []
    if (check.kind, check.verb) == ("task", "complete") and options.allow_incomplete_tests:
        unfinished = [t.id for t in epic.tests_for_task(check.entity_id) if not t.state.is_terminal]
        if unfinished:
            warnings.append(f"Task {check.entity_id} completed with unfinished tests: {', '.join(unfinished)}")
    if (check.kind, check.verb) == ("phase", "start") and options.allow_failing_tests:
        index = epic.phase_index(check.entity_id)
        earlier = {p.id for p in epic.phases[:index]}
        failing = [t.id for t in epic.failing_tests() if t.phase_id in earlier]
        if failing:
            warnings.append(f"Phase {check.entity_id} started with failing tests in earlier phases: {', '.join(failing)}")
    return warnings
