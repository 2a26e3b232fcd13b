"""
Transition checks shared by the engine and the batch validator.

check_transition() runs the whole decision for one request without touching
the document:

1. Look up the entity (not_found)
2. Idempotence: the verb's effect already holds (already_in_target)
3. Transition table row for the current status (invalid_transition)
4. Cross-entity prerequisites, all collected (precondition_failed)

can_apply() is the pure ok-or-error view of the same decision.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from agentpm.errors import (
    AgentPMError,
    InvalidTransitionError,
    PredicateFailure,
    PreconditionError,
    UsageError,
)
from agentpm.lib.suggest import not_found
from agentpm.model.document import Epic
from agentpm.workflow.fsm import TARGET_FOR, LifecycleFSM, verbs_for
from agentpm.workflow.status import KINDS, Status, TestState


@dataclass
class TransitionOptions:
    """Caller opt-ins that relax the default prerequisites."""
    allow_failing_tests: bool = False  # start phase with failing tests in earlier phases
    allow_incomplete_tests: bool = False  # complete task with pending/wip tests
    allow_fail_after_pass: bool = True  # fail a test that already passed
    assignee: str = ""  # given to a task started without one


@dataclass
class TransitionCheck:
    """Outcome of checking one transition request."""
    kind: str
    entity_id: str
    verb: str
    entity: object = None
    from_status: str = ""
    to_status: str = ""
    already_in_target: bool = False
    error: Optional[AgentPMError] = None
    failures: list[PredicateFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def status_token(kind: str, entity) -> str:
    """Current FSM state token of an entity."""
    if kind == "test":
        return entity.state.value
    return entity.status.value


def check_transition(
    epic: Epic,
    kind: str,
    entity_id: str,
    verb: str,
    reason: Optional[str] = None,
    options: Optional[TransitionOptions] = None,
) -> TransitionCheck:
    """Decide whether (kind, entity_id, verb) may be applied to the epic."""
    options = options or TransitionOptions()
    if kind not in KINDS:
        raise UsageError(f"Unknown entity kind '{kind}'")
    if verb not in verbs_for(kind):
        raise UsageError(f"'{verb}' is not a valid action for a {kind}")

    check = TransitionCheck(kind=kind, entity_id=entity_id, verb=verb)

    entity = epic.find(kind, entity_id)
    if entity is None:
        check.error = not_found(kind, entity_id, epic.ids(kind))
        return check
    if kind == "epic":
        check.entity_id = entity_id = epic.id
    check.entity = entity

    current = status_token(kind, entity)
    check.from_status = current
    target = TARGET_FOR[(kind, verb)]
    check.to_status = target

    if current == target:
        check.already_in_target = True
        return check

    fsm = LifecycleFSM(kind, current, allow_fail_after_pass=options.allow_fail_after_pass)
    if not fsm.can(verb):
        check.error = InvalidTransitionError(kind, entity_id, verb, current, target)
        return check

    predicate = PREREQUISITES.get((kind, verb))
    failures = predicate(epic, entity, reason, options) if predicate else []
    if failures:
        check.failures = failures
        check.error = PreconditionError(kind, entity_id, verb, failures)
    return check


def can_apply(
    epic: Epic,
    kind: str,
    entity_id: str,
    verb: str,
    reason: Optional[str] = None,
    options: Optional[TransitionOptions] = None,
) -> Optional[AgentPMError]:
    """Return None if the transition may be applied (or already holds), else the error."""
    return check_transition(epic, kind, entity_id, verb, reason, options).error


# Predicates. Each returns every failure it finds; order matters, the first
# failure is reported as the primary one.

def _ids(entities) -> str:
    return ", ".join(e.id for e in entities)


def _resume_epic(epic, entity, reason, options) -> list[PredicateFailure]:
    if epic.started_at is None:
        return [PredicateFailure(
            code="epic_not_paused",
            message=f"Epic {epic.id} has never been started; use start instead of resume",
            entity_id=epic.id,
        )]
    return []


def _complete_epic(epic, entity, reason, options) -> list[PredicateFailure]:
    failures = []
    open_phases = [p for p in epic.phases if p.status != Status.DONE]
    if open_phases:
        failures.append(PredicateFailure(
            code="phases_not_done",
            message=f"Cannot complete epic {epic.id}: phases not done: {_ids(open_phases)}",
            entity_id=epic.id,
            details={"phases": [p.id for p in open_phases]},
        ))
    failing = epic.failing_tests()
    if failing:
        failures.append(PredicateFailure(
            code="failing_tests_present",
            message=f"Cannot complete epic {epic.id}: failing tests: {_ids(failing)}",
            entity_id=epic.id,
            details={"tests": [t.id for t in failing]},
        ))
    return failures


def _start_phase(epic, phase, reason, options) -> list[PredicateFailure]:
    failures = []
    active = epic.active_phase()
    if active is not None and active.id != phase.id:
        failures.append(PredicateFailure(
            code="another_phase_active",
            message=f"Cannot start phase {phase.id}: phase {active.id} is already active",
            entity_id=phase.id,
            details={"active_phase": active.id},
        ))

    index = epic.phase_index(phase.id)
    blocking = []
    for earlier in epic.phases[:index]:
        for test in epic.tests_in_phase(earlier.id):
            if test.state == TestState.FAILING and options.allow_failing_tests:
                continue
            if test.state in (TestState.PASSING, TestState.CANCELLED):
                continue
            blocking.append(test)
    if blocking:
        failures.append(PredicateFailure(
            code="phase_test_prerequisite",
            message=(
                f"Cannot start phase {phase.id}: tests in earlier phases are not complete: "
                f"{_ids(blocking)}"
            ),
            entity_id=phase.id,
            details={"tests": [t.id for t in blocking]},
        ))
    return failures


def _complete_phase(epic, phase, reason, options) -> list[PredicateFailure]:
    failures = []
    open_tasks = [t for t in epic.tasks_in(phase.id) if t.status not in (Status.DONE, Status.CANCELLED)]
    if open_tasks:
        failures.append(PredicateFailure(
            code="tasks_not_done",
            message=f"Cannot complete phase {phase.id}: tasks not done: {_ids(open_tasks)}",
            entity_id=phase.id,
            details={"tasks": [t.id for t in open_tasks]},
        ))
    tests = epic.tests_in_phase(phase.id)
    failing = [t for t in tests if t.state == TestState.FAILING]
    if failing:
        failures.append(PredicateFailure(
            code="failing_tests_present",
            message=f"Cannot complete phase {phase.id}: failing tests: {_ids(failing)}",
            entity_id=phase.id,
            details={"tests": [t.id for t in failing]},
        ))
    unfinished = [t for t in tests if not t.state.is_terminal]
    if unfinished:
        failures.append(PredicateFailure(
            code="tests_not_terminal",
            message=f"Cannot complete phase {phase.id}: tests not finished: {_ids(unfinished)}",
            entity_id=phase.id,
            details={"tests": [t.id for t in unfinished]},
        ))
    return failures


def _phase_must_be_active(epic, phase_id: str, entity_id: str, what: str) -> list[PredicateFailure]:
    phase = epic.find_phase(phase_id)
    if phase is not None and phase.status == Status.WIP:
        return []
    active = epic.active_phase()
    if active is None:
        message = f"no active phase found - {what} operations require an active phase"
    else:
        message = f"{what} {entity_id} belongs to phase {phase_id}, but active phase is {active.id}"
    return [PredicateFailure(
        code="phase_not_active",
        message=message,
        entity_id=entity_id,
        details={"phase_id": phase_id, "active_phase": active.id if active else ""},
    )]


def _start_task(epic, task, reason, options) -> list[PredicateFailure]:
    failures = _phase_must_be_active(epic, task.phase_id, task.id, "task")
    for sibling in epic.tasks_in(task.phase_id):
        if sibling.id != task.id and sibling.status == Status.WIP:
            failures.append(PredicateFailure(
                code="sibling_task_active",
                message=f"Cannot start task {task.id}: task {sibling.id} is already active in phase {task.phase_id}",
                entity_id=task.id,
                details={"active_task": sibling.id, "phase_id": task.phase_id},
            ))
            break
    return failures


def _complete_task(epic, task, reason, options) -> list[PredicateFailure]:
    failures = []
    tests = epic.tests_for_task(task.id)
    failing = [t for t in tests if t.state == TestState.FAILING]
    if failing:
        failures.append(PredicateFailure(
            code="failing_tests_present",
            message=f"Cannot complete task {task.id}: failing tests: {_ids(failing)}",
            entity_id=task.id,
            details={"tests": [t.id for t in failing]},
        ))
    unfinished = [t for t in tests if not t.state.is_terminal]
    if unfinished and not options.allow_incomplete_tests:
        failures.append(PredicateFailure(
            code="tests_not_terminal",
            message=f"Cannot complete task {task.id}: tests not finished: {_ids(unfinished)}",
            entity_id=task.id,
            details={"tests": [t.id for t in unfinished]},
        ))
    return failures


def _test_in_active_phase(epic, test, reason, options) -> list[PredicateFailure]:
    return _phase_must_be_active(epic, test.phase_id, test.id, "test")


def _cancel_test(epic, test, reason, options) -> list[PredicateFailure]:
    failures = _phase_must_be_active(epic, test.phase_id, test.id, "test")
    if not (reason or "").strip():
        failures.append(PredicateFailure(
            code="cancel_reason_missing",
            message=f"cancellation reason is required for test {test.id}",
            entity_id=test.id,
        ))
    return failures


Predicate = Callable[[Epic, object, Optional[str], TransitionOptions], list[PredicateFailure]]

PREREQUISITES: dict[tuple[str, str], Predicate] = {
    ("epic", "resume"): _resume_epic,
    ("epic", "complete"): _complete_epic,
    ("phase", "start"): _start_phase,
    ("phase", "complete"): _complete_phase,
    ("task", "start"): _start_task,
    ("task", "complete"): _complete_task,
    ("test", "start"): _test_in_active_phase,
    ("test", "pass"): _test_in_active_phase,
    ("test", "fail"): _test_in_active_phase,
    ("test", "cancel"): _cancel_test,
}
