"""
Document integrity checks.

reference_problems() covers what every load enforces: unique IDs per kind
and dangling task/test references. check_epic() runs the full set used by
`agentpm validate`, including the lifecycle invariants the engine maintains:

- at most one active phase
- at most one active task per phase
- test result only on done tests (held by construction, reported from load)
- current_state.active_task is wip and inside current_state.active_phase
- completed_at, passed_at, failed_at and cancelled_at not before started_at
"""

from collections import Counter
from dataclasses import dataclass, field

from agentpm.model.document import Epic
from agentpm.workflow.status import Status


@dataclass
class Finding:
    code: str
    message: str
    entity_id: str = ""

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message}
        if self.entity_id:
            data["entity_id"] = self.entity_id
        return data


@dataclass
class ValidationReport:
    valid: bool = True
    errors: list[Finding] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)
    checks: list[str] = field(default_factory=list)

    def error(self, code: str, message: str, entity_id: str = "") -> None:
        self.errors.append(Finding(code, message, entity_id))
        self.valid = False

    def warn(self, code: str, message: str, entity_id: str = "") -> None:
        self.warnings.append(Finding(code, message, entity_id))

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
            "checks": list(self.checks),
        }


def reference_problems(epic: Epic) -> list[Finding]:
    """Duplicate IDs and dangling references."""
    problems = []

    for kind, entities in (("phase", epic.phases), ("task", epic.tasks), ("test", epic.tests)):
        counts = Counter(e.id for e in entities)
        for entity_id, count in counts.items():
            if count > 1:
                problems.append(Finding("duplicate_id", f"duplicate {kind} ID {entity_id} ({count} times)", entity_id))

    phase_ids = {p.id for p in epic.phases}
    for task in epic.tasks:
        if task.phase_id not in phase_ids:
            problems.append(Finding(
                "missing_phase",
                f"task {task.id} references missing phase {task.phase_id or '(none)'}",
                task.id,
            ))

    for test in epic.tests:
        task = epic.find_task(test.task_id)
        if task is None:
            problems.append(Finding(
                "missing_task",
                f"test {test.id} references missing task {test.task_id or '(none)'}",
                test.id,
            ))
        elif test.phase_id != task.phase_id:
            problems.append(Finding(
                "phase_mismatch",
                f"test {test.id} is in phase {test.phase_id} but its task {task.id} is in phase {task.phase_id}",
                test.id,
            ))

    return problems


def check_epic(epic: Epic) -> ValidationReport:
    """Run every structural and lifecycle check."""
    report = ValidationReport()

    report.checks.append("epic_metadata")
    if not epic.id:
        report.error("missing_epic_id", "epic has no id")
    if not epic.name:
        report.warn("missing_epic_name", "epic has no name", epic.id)
    if not epic.phases:
        report.warn("no_phases", "epic has no phases", epic.id)

    report.checks.append("references")
    for finding in reference_problems(epic):
        report.error(finding.code, finding.message, finding.entity_id)

    report.checks.append("single_active_phase")
    active_phases = [p.id for p in epic.phases if p.status == Status.WIP]
    if len(active_phases) > 1:
        report.error("multiple_active_phases", f"more than one active phase: {', '.join(active_phases)}")

    report.checks.append("single_active_task_per_phase")
    for phase in epic.phases:
        active_tasks = [t.id for t in epic.tasks_in(phase.id) if t.status == Status.WIP]
        if len(active_tasks) > 1:
            report.error(
                "multiple_active_tasks",
                f"phase {phase.id} has more than one active task: {', '.join(active_tasks)}",
                phase.id,
            )

    report.checks.append("current_state")
    state = epic.current_state
    if state.active_task:
        task = epic.find_task(state.active_task)
        if task is None or task.status != Status.WIP:
            report.error(
                "stale_active_task",
                f"current_state.active_task {state.active_task} is not an active task",
                state.active_task,
            )
        elif task.phase_id != state.active_phase:
            report.error(
                "active_task_outside_phase",
                f"current_state.active_task {task.id} is not in active phase {state.active_phase or '(none)'}",
                task.id,
            )

    report.checks.append("timestamps")
    for entity in [epic, *epic.phases, *epic.tasks, *epic.tests]:
        started = entity.started_at
        if started is None:
            continue
        for field_name in ("completed_at", "passed_at", "failed_at", "cancelled_at"):
            stamp = getattr(entity, field_name, None)
            if stamp and stamp < started:
                report.error(
                    f"{field_name[:-3]}_before_started",
                    f"{entity.id}: {field_name} {stamp.isoformat()} is before started_at {started.isoformat()}",
                    entity.id,
                )

    report.checks.append("load_normalization")
    for warning in epic.warnings:
        report.warn("normalized", warning)

    return report
