"""Tests for agentpm.hints.generator module."""

from agentpm.errors import AgentPMError, ConfigError, RouteError
from agentpm.hints.generator import (
    ErrorContext,
    Hint,
    HintConfig,
    HintRule,
    context_from_error,
    generate_hint,
)
from agentpm.workflow.prerequisites import check_transition
from agentpm.workflow.status import Status


def _hint_for(epic, kind, entity_id, verb, reason=None, config=None):
    error = check_transition(epic, kind, entity_id, verb, reason).error
    return generate_hint(context_from_error(error, epic), config)


class TestContextFromError:
    """Building an ErrorContext from raised errors."""

    def test_precondition_details_copied(self, epic):
        error = check_transition(epic, "phase", "1B", "start").error
        ctx = context_from_error(error, epic)
        assert ctx.error_kind == "precondition_failed"
        assert ctx.predicate == "another_phase_active"
        assert ctx.kind == "phase"
        assert ctx.entity_id == "1B"
        assert ctx.extra["active_phase"] == "1A"
        assert ctx.extra["epic_status"] == "wip"

    def test_invalid_transition_statuses(self, epic):
        error = check_transition(epic, "task", "1A_1", "complete").error
        ctx = context_from_error(error)
        assert ctx.current_status == "pending"
        assert ctx.target_status == "done"
        assert "epic_status" not in ctx.extra

    def test_route_candidates(self):
        ctx = context_from_error(RouteError("1A_X", ["task", "phase"]))
        assert ctx.error_kind == "usage_error"
        assert ctx.extra["candidates"] == ["task", "phase"]


class TestRules:
    """Rule selection for the common failures."""

    def test_another_phase_active(self, epic):
        hint = _hint_for(epic, "phase", "1B", "start")
        assert hint.content == "Complete phase '1A' before starting '1B'"
        assert hint.command == "agentpm done phase 1A"
        assert hint.category == "actionable"
        assert hint.priority == "high"

    def test_sibling_task_active(self, epic):
        epic.find_task("1A_1").status = Status.WIP
        hint = _hint_for(epic, "task", "1A_2", "start")
        assert hint.command == "agentpm done task 1A_1"

    def test_task_in_wrong_phase(self, epic):
        hint = _hint_for(epic, "task", "1B_1", "start")
        assert hint.command == "agentpm done phase 1A"
        assert "belongs to phase '1B'" in hint.content

    def test_no_active_phase(self, epic):
        epic.find_phase("1A").status = Status.PENDING
        hint = _hint_for(epic, "task", "1A_1", "start")
        assert hint.command == "agentpm start phase 1A"

    def test_cancel_reason(self, epic):
        hint = _hint_for(epic, "test", "1A_T1", "cancel", reason="")
        assert hint.command == 'agentpm cancel-test 1A_T1 "<reason>"'

    def test_completion_gate(self, epic):
        hint = _hint_for(epic, "phase", "1A", "complete")
        assert hint.content.endswith("1A_1, 1A_2")
        assert hint.command == "agentpm pending"

    def test_not_found_with_suggestion(self, epic):
        hint = _hint_for(epic, "task", "1A_3", "start")
        assert hint.content == "Did you mean '1A_1'?"
        assert hint.category == "diagnostic"
        assert hint.command == "agentpm show task 1A_1"

    def test_start_before_complete(self, epic):
        hint = _hint_for(epic, "task", "1A_1", "complete")
        assert hint.content == "Start task '1A_1' before trying to complete it"
        assert hint.command == "agentpm start task 1A_1"

    def test_already_finished(self, epic):
        epic.find_task("1A_1").status = Status.CANCELLED
        hint = _hint_for(epic, "task", "1A_1", "complete")
        assert hint.category == "informational"
        assert "already cancelled" in hint.content

    def test_configuration_error(self):
        hint = generate_hint(context_from_error(ConfigError("Config file not found")))
        assert hint.category == "configuration"

    def test_fallback(self, epic):
        hint = generate_hint(context_from_error(AgentPMError("something odd"), epic))
        assert hint.category == "workflow"
        assert hint.priority == "low"
        assert "active phase '1A'" in hint.content


class TestHintConfig:
    """Configuration filters."""

    def test_defaults(self):
        config = HintConfig.from_dict(None)
        assert config == HintConfig(enabled=True, show_commands=True, show_references=False, min_priority="low")

    def test_disabled(self, epic):
        config = HintConfig(enabled=False)
        assert _hint_for(epic, "phase", "1B", "start", config=config) is None

    def test_priority_floor_filters_fallback(self):
        config = HintConfig(min_priority="medium")
        assert generate_hint(ErrorContext(error_kind="error"), config) is None

    def test_priority_floor_keeps_high(self, epic):
        config = HintConfig(min_priority="high")
        assert _hint_for(epic, "phase", "1B", "start", config=config) is not None

    def test_commands_and_references_suppressed(self, epic):
        epic.phases[0].status = Status.DONE
        config = HintConfig.from_dict({"show_commands": False, "show_references": False})
        hint = _hint_for(epic, "phase", "1B", "start", config=config)
        assert hint.command is None
        assert hint.reference is None

    def test_references_shown_when_enabled(self, epic):
        epic.phases[0].status = Status.DONE
        config = HintConfig(show_references=True)
        hint = _hint_for(epic, "phase", "1B", "start", config=config)
        assert "--allow-failing-tests" in hint.reference

    def test_custom_rules_by_priority(self):
        rules = [
            HintRule("low", 1, lambda ctx: True, lambda ctx: Hint("low rule")),
            HintRule("high", 50, lambda ctx: True, lambda ctx: Hint("high rule")),
        ]
        hint = generate_hint(ErrorContext(error_kind="error"), rules=rules)
        assert hint.content == "high rule"

    def test_to_dict_omits_empty_fields(self):
        assert Hint("x").to_dict() == {"content": "x", "category": "workflow", "priority": "low"}
