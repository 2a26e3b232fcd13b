"""Derive current_state from the document.

current_state is never patched at call sites; the engine recomputes it after
every successful transition, so the active task always belongs to the active
phase and is wip.
"""

from agentpm.model.document import CurrentState, Epic
from agentpm.workflow.status import Status

EPIC_COMPLETED = "Epic completed"
COMPLETE_PHASE = "Complete current phase"
EPIC_READY = "Epic ready for completion"


def next_action(epic: Epic) -> str:
    """Suggested next step, in fixed priority order.

    Failing tests come first, then the active task, then the next pending
    task of the active phase, then the next pending phase.
    """
    if epic.status == Status.DONE:
        return EPIC_COMPLETED

    failing = epic.failing_tests()
    if failing:
        return "Fix failing tests: " + ", ".join(t.id for t in failing)

    phase = epic.active_phase()
    if phase is not None:
        task = epic.active_task_in(phase)
        if task is not None:
            return f"Continue work on: {task.name}"
        for task in epic.tasks_in(phase.id):
            if task.status == Status.PENDING:
                return f"Start next task: {task.name}"
        return COMPLETE_PHASE

    for candidate in epic.phases:
        if candidate.status == Status.PENDING:
            return f"Start next phase: {candidate.name}"

    return EPIC_READY


def recompute(epic: Epic) -> CurrentState:
    """Build the current_state record for the epic as it stands."""
    phase = epic.active_phase()
    task = epic.active_task_in(phase) if phase is not None else None
    return CurrentState(
        active_phase=phase.id if phase else "",
        active_task=task.id if task else "",
        next_action=next_action(epic),
    )


def refresh(epic: Epic) -> None:
    """Recompute and store current_state."""
    state = recompute(epic)
    epic.update_current_state(state.active_phase, state.active_task, state.next_action)
