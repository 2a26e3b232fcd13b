"""Pick and start the next unit of work (`agentpm start next`).

With an active phase: keep the active task, else start the first pending
task, else complete the phase and move on. Without one: start the next
pending phase and its first pending task.

All steps run on a copy of the epic through the transition engine; the
caller saves AutoNextResult.epic only if the whole selection succeeded.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from agentpm.model.document import Epic, Phase
from agentpm.workflow.engine import TransitionResult, apply
from agentpm.workflow.prerequisites import TransitionOptions
from agentpm.workflow.status import Status


@dataclass
class AutoNextResult:
    action: str  # task_started, phase_started, already_active, all_complete
    message: str
    epic: Epic
    phase_id: str = ""
    task_id: str = ""
    transitions: list[TransitionResult] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(not t.already_in_target for t in self.transitions)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "message": self.message,
            "phase_id": self.phase_id,
            "task_id": self.task_id,
            "transitions": [t.to_dict() for t in self.transitions],
        }


def select_next(epic: Epic, timestamp: datetime, options: Optional[TransitionOptions] = None) -> AutoNextResult:
    """Start the next piece of work.

    Raises whatever the engine raises if a required transition is rejected;
    the epic passed in is never modified.
    """
    working = copy.deepcopy(epic)
    transitions: list[TransitionResult] = []

    phase = working.active_phase()
    if phase is not None:
        task = working.active_task_in(phase)
        if task is not None:
            return AutoNextResult(
                action="already_active",
                message=f"Task {task.id} ({task.name}) is already active",
                epic=working,
                phase_id=phase.id,
                task_id=task.id,
            )

        pending = _first_pending_task(working, phase)
        if pending is not None:
            transitions.append(apply(working, "task", pending, "start", timestamp, options=options))
            return AutoNextResult(
                action="task_started",
                message=f"Started task {pending} in phase {phase.id}",
                epic=working,
                phase_id=phase.id,
                task_id=pending,
                transitions=transitions,
            )

        transitions.append(apply(working, "phase", phase.id, "complete", timestamp, options=options))

    next_phase = _first_pending_phase(working)
    if next_phase is None:
        return AutoNextResult(
            action="all_complete",
            message="All phases are complete",
            epic=working,
            transitions=transitions,
        )

    transitions.append(apply(working, "phase", next_phase.id, "start", timestamp, options=options))
    task_id = _first_pending_task(working, next_phase)
    message = f"Started phase {next_phase.id}"
    if task_id is not None:
        transitions.append(apply(working, "task", task_id, "start", timestamp, options=options))
        message += f" and task {task_id}"

    return AutoNextResult(
        action="phase_started",
        message=message,
        epic=working,
        phase_id=next_phase.id,
        task_id=task_id or "",
        transitions=transitions,
    )


def _first_pending_phase(epic: Epic) -> Optional[Phase]:
    for phase in epic.phases:
        if phase.status == Status.PENDING:
            return phase
    return None


def _first_pending_task(epic: Epic, phase: Phase) -> Optional[str]:
    for task in epic.tasks_in(phase.id):
        if task.status == Status.PENDING:
            return task.id
    return None
