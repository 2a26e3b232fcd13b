"""
In-memory epic document.

One Epic owns its phases, tasks, tests and the append-only event log. The
model only offers lookups and the two raw mutators the transition engine
needs (append_event, update_current_state); lifecycle rules live in
agentpm.workflow.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from agentpm.workflow.status import Status, TestState


@dataclass
class Phase:
    """An ordered stage of the epic."""
    id: str
    name: str
    status: Status = Status.PENDING
    description: str = ""
    deliverables: str = ""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class Task:
    """Unit of work inside one phase."""
    id: str
    phase_id: str
    name: str
    status: Status = Status.PENDING
    description: str = ""
    acceptance_criteria: str = ""
    assignee: str = ""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


@dataclass
class Test:
    """Verifiable check attached to a task."""
    __test__ = False

    id: str
    task_id: str
    phase_id: str
    name: str
    state: TestState = TestState.PENDING
    description: str = ""
    started_at: Optional[datetime] = None
    passed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    failure_note: str = ""
    cancellation_reason: str = ""

    @property
    def status(self) -> Status:
        return self.state.status

    @property
    def result(self) -> str:
        return self.state.result


@dataclass
class Event:
    """Audit record appended to the epic."""
    id: str
    type: str
    timestamp: datetime
    data: str = ""
    entity_id: str = ""


@dataclass
class CurrentState:
    """Derived pointer to the active work and the suggested next step."""
    active_phase: str = ""
    active_task: str = ""
    next_action: str = ""


@dataclass
class Epic:
    """Root of one epic document."""
    id: str
    name: str
    status: Status = Status.PENDING
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assignee: str = ""
    description: str = ""
    current_state: CurrentState = field(default_factory=CurrentState)
    phases: list[Phase] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    tests: list[Test] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    # Load-time diagnostics, never persisted
    warnings: list[str] = field(default_factory=list, compare=False, repr=False)

    @property
    def is_paused(self) -> bool:
        """A paused epic is pending but has been started before."""
        return self.status == Status.PENDING and self.started_at is not None

    # Lookups

    def find_phase(self, phase_id: str) -> Optional[Phase]:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def find_test(self, test_id: str) -> Optional[Test]:
        for test in self.tests:
            if test.id == test_id:
                return test
        return None

    def find(self, kind: str, entity_id: str):
        """Look up an entity by kind name; the epic matches its own ID or 'epic'."""
        if kind == "epic":
            return self if entity_id in ("", "epic", self.id) else None
        finder = {
            "phase": self.find_phase,
            "task": self.find_task,
            "test": self.find_test,
        }.get(kind)
        return finder(entity_id) if finder else None

    def ids(self, kind: str) -> list[str]:
        entities = {"phase": self.phases, "task": self.tasks, "test": self.tests}.get(kind, [])
        return [e.id for e in entities]

    def active_phase(self) -> Optional[Phase]:
        """Return the wip phase, or None."""
        for phase in self.phases:
            if phase.status == Status.WIP:
                return phase
        return None

    def active_task_in(self, phase: Phase) -> Optional[Task]:
        for task in self.tasks_in(phase.id):
            if task.status == Status.WIP:
                return task
        return None

    def tasks_in(self, phase_id: str) -> list[Task]:
        return [t for t in self.tasks if t.phase_id == phase_id]

    def tests_in_phase(self, phase_id: str) -> list[Test]:
        return [t for t in self.tests if t.phase_id == phase_id]

    def tests_for_task(self, task_id: str) -> list[Test]:
        return [t for t in self.tests if t.task_id == task_id]

    def phase_index(self, phase_id: str) -> int:
        """Position of a phase in document order, or -1."""
        for i, phase in enumerate(self.phases):
            if phase.id == phase_id:
                return i
        return -1

    def failing_tests(self) -> list[Test]:
        return [t for t in self.tests if t.state == TestState.FAILING]

    # Mutators (transition engine only)

    def append_event(self, event: Event) -> None:
        self.events.append(event)

    def update_current_state(self, phase_id: str, task_id: str, next_action: str) -> None:
        self.current_state = CurrentState(
            active_phase=phase_id,
            active_task=task_id,
            next_action=next_action,
        )
