"""
Remediation hints for CLI errors.

Rules are data: each HintRule has a name, a priority, a matches(ctx)
predicate and a build(ctx) function. generate_hint() walks the rules from
highest to lowest priority and returns the first hint that passes the
configured priority floor. The workflow fallback matches everything.

Usage:
    from agentpm.hints.generator import context_from_error, generate_hint

    hint = generate_hint(context_from_error(err, epic), HintConfig())
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from agentpm.errors import AgentPMError, PreconditionError

CATEGORIES = ("actionable", "informational", "diagnostic", "workflow", "configuration")

# Priority floor ranks: a hint is shown if its rank >= the configured minimum
PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2}


@dataclass
class Hint:
    content: str
    category: str = "workflow"
    priority: str = "low"
    command: Optional[str] = None
    reference: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"content": self.content, "category": self.category, "priority": self.priority}
        if self.command:
            data["command"] = self.command
        if self.reference:
            data["reference"] = self.reference
        return data


@dataclass
class ErrorContext:
    """What went wrong, as seen by the hint rules."""
    error_kind: str
    verb: str = ""
    kind: str = ""
    entity_id: str = ""
    current_status: str = ""
    target_status: str = ""
    extra: dict = field(default_factory=dict)

    @property
    def predicate(self) -> str:
        return self.extra.get("predicate", "")


@dataclass
class HintConfig:
    enabled: bool = True
    show_commands: bool = True
    show_references: bool = False
    min_priority: str = "low"

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "HintConfig":
        data = data or {}
        return cls(
            enabled=data.get("enabled", True),
            show_commands=data.get("show_commands", True),
            show_references=data.get("show_references", False),
            min_priority=data.get("min_priority", "low"),
        )


@dataclass
class HintRule:
    name: str
    priority: int
    matches: Callable[[ErrorContext], bool]
    build: Callable[[ErrorContext], Hint]


def context_from_error(error: AgentPMError, epic=None) -> ErrorContext:
    """Build an ErrorContext from a raised error and, optionally, the loaded epic."""
    ctx = ErrorContext(
        error_kind=error.kind,
        verb=getattr(error, "verb", ""),
        kind=getattr(error, "entity_kind", ""),
        entity_id=getattr(error, "entity_id", ""),
        current_status=getattr(error, "from_status", ""),
        target_status=getattr(error, "to_status", ""),
    )
    if isinstance(error, PreconditionError):
        ctx.extra.update(error.failures[0].details)
        ctx.extra["predicate"] = error.predicate
    suggestion = getattr(error, "suggestion", None)
    if suggestion:
        ctx.extra["suggestion"] = suggestion
    candidates = getattr(error, "candidates", None)
    if candidates:
        ctx.extra["candidates"] = list(candidates)
    if epic is not None:
        ctx.extra.setdefault("epic_status", epic.status.value)
        active = epic.active_phase()
        if active is not None:
            ctx.extra.setdefault("active_phase", active.id)
    return ctx


# Rule builders

def _precondition(*codes: str) -> Callable[[ErrorContext], bool]:
    return lambda ctx: ctx.error_kind == "precondition_failed" and ctx.predicate in codes


def _another_phase_active(ctx: ErrorContext) -> Hint:
    active = ctx.extra.get("active_phase", "")
    return Hint(
        content=f"Complete phase '{active}' before starting '{ctx.entity_id}'",
        category="actionable",
        priority="high",
        command=f"agentpm done phase {active}",
    )


def _sibling_task_active(ctx: ErrorContext) -> Hint:
    active = ctx.extra.get("active_task", "")
    phase = ctx.extra.get("phase_id", "")
    return Hint(
        content=f"Complete task '{active}' in phase '{phase}' before starting '{ctx.entity_id}'",
        category="actionable",
        priority="high",
        command=f"agentpm done task {active}",
    )


def _phase_not_active(ctx: ErrorContext) -> Hint:
    phase = ctx.extra.get("phase_id", "")
    active = ctx.extra.get("active_phase", "")
    if active and active != phase:
        return Hint(
            content=f"'{ctx.entity_id}' belongs to phase '{phase}'; finish active phase '{active}' first",
            category="actionable",
            priority="high",
            command=f"agentpm done phase {active}",
        )
    return Hint(
        content=f"Start phase '{phase}' before working on '{ctx.entity_id}'",
        category="actionable",
        priority="high",
        command=f"agentpm start phase {phase}",
    )


def _phase_test_prerequisite(ctx: ErrorContext) -> Hint:
    tests = ", ".join(ctx.extra.get("tests", []))
    return Hint(
        content=f"Finish tests from earlier phases before starting '{ctx.entity_id}': {tests}",
        category="actionable",
        priority="high",
        command="agentpm failing",
        reference="Use --allow-failing-tests to start anyway when only failing tests remain",
    )


def _cancel_reason_missing(ctx: ErrorContext) -> Hint:
    return Hint(
        content="A cancellation reason is required",
        category="actionable",
        priority="high",
        command=f'agentpm cancel-test {ctx.entity_id} "<reason>"',
    )


def _failing_tests_present(ctx: ErrorContext) -> Hint:
    tests = ", ".join(ctx.extra.get("tests", []))
    return Hint(
        content=f"Fix failing tests first: {tests}",
        category="actionable",
        priority="high",
        command="agentpm failing",
    )


def _completion_gate(ctx: ErrorContext) -> Hint:
    outstanding = ctx.extra.get("tasks") or ctx.extra.get("tests") or ctx.extra.get("phases") or []
    return Hint(
        content=f"Finish outstanding work before completing {ctx.kind} '{ctx.entity_id}': {', '.join(outstanding)}",
        category="actionable",
        priority="medium",
        command="agentpm pending",
    )


def _epic_not_paused(ctx: ErrorContext) -> Hint:
    return Hint(
        content="The epic has not been started yet; start it instead of resuming",
        category="actionable",
        priority="medium",
        command="agentpm start epic",
    )


def _not_found(ctx: ErrorContext) -> Hint:
    suggestion = ctx.extra.get("suggestion")
    if suggestion:
        return Hint(
            content=f"Did you mean '{suggestion}'?",
            category="diagnostic",
            priority="high",
            command=f"agentpm show {ctx.kind} {suggestion}",
        )
    return Hint(
        content=f"No {ctx.kind or 'entity'} '{ctx.entity_id}' exists in this epic",
        category="diagnostic",
        priority="medium",
        command="agentpm status",
    )


def _invalid_transition(ctx: ErrorContext) -> Hint:
    current = ctx.current_status
    kind, entity_id, verb = ctx.kind, ctx.entity_id, ctx.verb
    if current == "pending" and verb in ("complete", "pass", "fail"):
        return Hint(
            content=f"Start {kind} '{entity_id}' before trying to {verb} it",
            category="actionable",
            priority="medium",
            command=f"agentpm start {kind} {entity_id}",
        )
    if current in ("done", "passing", "failing", "cancelled"):
        return Hint(
            content=f"{kind.capitalize()} '{entity_id}' is already {current}. Use 'agentpm status' to see available work",
            category="informational",
            priority="medium",
            command="agentpm status",
        )
    return Hint(
        content=f"Cannot {verb} {kind} '{entity_id}' while it is '{current}'",
        category="actionable",
        priority="medium",
        command=f"agentpm show {kind} {entity_id}" if kind != "epic" else "agentpm status",
    )


def _configuration(ctx: ErrorContext) -> Hint:
    return Hint(
        content="Point agentpm at an epic with 'agentpm init --epic <path>' or pass --file",
        category="configuration",
        priority="medium",
        command="agentpm init --epic epic.xml",
    )


def _usage(ctx: ErrorContext) -> Hint:
    return Hint(
        content="IDs look like 1A (phase), 1A_1 (task) or 1A_T1 (test)",
        category="informational",
        priority="medium",
        command="agentpm --help",
    )


def _batch_invalid(ctx: ErrorContext) -> Hint:
    return Hint(
        content="Nothing was applied. Fix or drop the failed operations and resubmit the whole batch",
        category="actionable",
        priority="medium",
        command="agentpm current",
    )


def _workflow_fallback(ctx: ErrorContext) -> Hint:
    status = ctx.extra.get("epic_status", "")
    active = ctx.extra.get("active_phase", "")
    if status == "done":
        content = "Epic is completed. Point agentpm at another epic with 'agentpm init'"
    elif active:
        content = f"Continue work in active phase '{active}'. Use 'agentpm current' to see the current task"
    elif status == "wip":
        content = "Epic is active but no phase is started. Use 'agentpm start next' to begin"
    else:
        content = "Use 'agentpm current' to see active work and 'agentpm status' for an overview"
    return Hint(content=content, category="workflow", priority="low", command="agentpm current")


FALLBACK_RULE = HintRule("workflow", 10, lambda ctx: True, _workflow_fallback)

RULES = [
    HintRule("phase_constraint", 100, _precondition("another_phase_active"), _another_phase_active),
    HintRule("task_constraint", 100, _precondition("sibling_task_active"), _sibling_task_active),
    HintRule("phase_membership", 95, _precondition("phase_not_active"), _phase_not_active),
    HintRule("phase_test_prerequisite", 90, _precondition("phase_test_prerequisite"), _phase_test_prerequisite),
    HintRule("cancel_reason", 90, _precondition("cancel_reason_missing"), _cancel_reason_missing),
    HintRule("failing_tests", 90, _precondition("failing_tests_present"), _failing_tests_present),
    HintRule("completion_gate", 85, _precondition("tasks_not_done", "tests_not_terminal", "phases_not_done"), _completion_gate),
    HintRule("not_found", 85, lambda ctx: ctx.error_kind == "not_found", _not_found),
    HintRule("epic_not_paused", 80, _precondition("epic_not_paused"), _epic_not_paused),
    HintRule("state_transition", 80, lambda ctx: ctx.error_kind == "invalid_transition", _invalid_transition),
    HintRule("configuration", 70, lambda ctx: ctx.error_kind in ("config_error", "io_error"), _configuration),
    HintRule("batch", 60, lambda ctx: ctx.error_kind == "batch_invalid", _batch_invalid),
    HintRule("usage", 50, lambda ctx: ctx.error_kind == "usage_error", _usage),
    FALLBACK_RULE,
]


def generate_hint(
    ctx: ErrorContext,
    config: Optional[HintConfig] = None,
    rules: Optional[list[HintRule]] = None,
) -> Optional[Hint]:
    """Return the best hint for ctx, or None if hints are disabled or filtered out."""
    config = config or HintConfig()
    if not config.enabled:
        return None

    floor = PRIORITY_RANK.get(config.min_priority, 0)
    ordered = sorted(rules if rules is not None else RULES, key=lambda r: r.priority, reverse=True)

    for rule in ordered:
        if not rule.matches(ctx):
            continue
        hint = rule.build(ctx)
        if PRIORITY_RANK.get(hint.priority, 0) >= floor:
            return _apply_config(hint, config)

    return None


def _apply_config(hint: Hint, config: HintConfig) -> Hint:
    if not config.show_commands:
        hint.command = None
    if not config.show_references:
        hint.reference = None
    return hint
