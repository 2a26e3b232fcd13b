"""Tests for agentpm.workflow.batch module."""

import copy
from datetime import datetime, timezone

import pytest

from agentpm.errors import BatchInvalidError, UsageError
from agentpm.workflow.batch import (
    TestOperation,
    apply_batch,
    format_error_message,
    validate_batch,
)
from agentpm.workflow.status import TestState

T0 = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mixed(epic):
    """1A_T1 wip in the active phase, 1B_T1 wip in an inactive phase, 1A_T2 passing."""
    epic.find_test("1A_T1").state = TestState.WIP
    epic.find_test("1B_T1").state = TestState.WIP
    epic.find_test("1A_T2").state = TestState.PASSING
    return epic


class TestTestOperation:
    """Parsing of operation specs."""

    def test_parse_without_reason(self):
        op = TestOperation.parse("1A_T1:pass")
        assert op == TestOperation(test_id="1A_T1", verb="pass", reason=None)

    def test_parse_reason_may_contain_colons(self):
        op = TestOperation.parse("1A_T1:FAIL:timeout: retry later")
        assert op.verb == "fail"
        assert op.reason == "timeout: retry later"

    def test_parse_rejects_missing_verb(self):
        with pytest.raises(UsageError, match="expected ID:verb"):
            TestOperation.parse("1A_T1")

    def test_from_dict(self):
        op = TestOperation.from_dict({"test_id": "1A_T2", "verb": "cancel", "reason": "dup"})
        assert op == TestOperation(test_id="1A_T2", verb="cancel", reason="dup")

    def test_from_dict_requires_fields(self):
        with pytest.raises(UsageError):
            TestOperation.from_dict({"test_id": "1A_T2"})


class TestValidateBatch:
    """Validation never mutates and classifies every failure."""

    def test_empty_batch_is_usage_error(self, epic):
        with pytest.raises(UsageError, match="no operations provided"):
            validate_batch(epic, [])

    def test_all_valid(self, mixed):
        ops = [TestOperation("1A_T1", "pass"), TestOperation("1A_T2", "fail", "regressed")]
        result = validate_batch(mixed, ops)
        assert result.valid
        assert result.error_message == ""
        assert [op.test_name for op in result.valid_operations] == ["Config loads", "Models save"]
        assert result.summary.total == 2
        assert result.summary.valid == 2

    def test_mixed_batch_scenario(self, mixed):
        """One operation outside the active phase invalidates the whole batch."""
        before = copy.deepcopy(mixed)
        ops = [
            TestOperation("1A_T1", "pass"),
            TestOperation("1B_T1", "pass"),
            TestOperation("1A_T2", "fail", "issue"),
        ]

        result = validate_batch(mixed, ops)

        assert not result.valid
        assert result.summary.invalid == 1
        assert result.summary.phase_violations == 1
        assert result.invalid_operations[0].test_id == "1B_T1"
        assert result.invalid_operations[0].error.code == "phase_not_active"
        assert "1 of 3 operations are invalid" in result.error_message
        assert "1B_T1" in result.error_message
        assert mixed == before

    def test_not_found_classified(self, epic):
        result = validate_batch(epic, [TestOperation("1A_T9", "pass")])
        assert result.summary.tests_not_found == 1
        assert result.invalid_operations[0].error.kind == "not_found"
        assert result.invalid_operations[0].error.message == "Test 1A_T9 not found"

    def test_status_violations(self, epic):
        epic.find_test("1A_T1").state = TestState.CANCELLED
        ops = [
            TestOperation("1A_T1", "pass"),
            TestOperation("1A_T2", "cancel", ""),
            TestOperation("1A_T2", "start"),
        ]
        result = validate_batch(epic, ops)
        assert result.summary.status_violations == 3
        codes = [op.error.code for op in result.invalid_operations]
        assert codes == ["", "cancel_reason_missing", "unsupported_verb"]
        assert result.invalid_operations[0].error.kind == "invalid_transition"

    def test_error_message_layout(self, epic):
        ops = [TestOperation("1A_T9", "pass"), TestOperation("1B_T1", "pass"), TestOperation("1A_T1", "pass")]
        result = validate_batch(epic, ops)
        assert format_error_message(result) == result.error_message
        assert result.error_message.splitlines() == [
            "Batch operation failed: 2 of 3 operations are invalid",
            "- 1 tests not found",
            "- 1 phase violations (tests not in active phase)",
            "",
            "Failed operations:",
            "- 1A_T9 (pass): Test 1A_T9 not found",
            "- 1B_T1 (pass): test 1B_T1 belongs to phase 1B, but active phase is 1A",
        ]

    def test_later_operations_see_earlier_ones(self, mixed):
        """A second operation on the same test is checked against the first one's result."""
        before = copy.deepcopy(mixed)
        ops = [TestOperation("1A_T1", "pass"), TestOperation("1A_T1", "cancel", "duplicate")]

        result = validate_batch(mixed, ops)

        assert not result.valid
        assert [op.test_id for op in result.valid_operations] == ["1A_T1"]
        invalid = result.invalid_operations[0]
        assert invalid.verb == "cancel"
        assert invalid.error.kind == "invalid_transition"
        assert "passing -> cancelled" in invalid.error.message
        assert result.summary.status_violations == 1
        assert mixed == before

    def test_repeated_operation_is_idempotent(self, mixed):
        ops = [TestOperation("1A_T1", "pass"), TestOperation("1A_T1", "pass")]
        assert validate_batch(mixed, ops).valid

    def test_to_dict(self, epic):
        result = validate_batch(epic, [TestOperation("1A_T9", "pass")])
        data = result.to_dict()
        assert data["valid"] is False
        assert data["summary"]["tests_not_found"] == 1
        assert data["invalid_operations"][0]["error"]["entity"] == "1A_T9"


class TestApplyBatch:
    """All-or-nothing application."""

    def test_applies_every_operation_to_a_copy(self, mixed):
        ops = [TestOperation("1A_T1", "pass"), TestOperation("1A_T2", "fail", "regressed")]
        updated, results = apply_batch(mixed, ops, T0)

        assert [r.to_status for r in results] == ["passing", "failing"]
        assert updated.find_test("1A_T1").state == TestState.PASSING
        assert updated.find_test("1A_T2").failure_note == "regressed"
        assert len(updated.events) == 2
        assert mixed.find_test("1A_T1").state == TestState.WIP
        assert mixed.events == []

    def test_invalid_batch_raises_without_changes(self, mixed):
        before = copy.deepcopy(mixed)
        ops = [TestOperation("1A_T1", "pass"), TestOperation("1B_T1", "pass")]

        with pytest.raises(BatchInvalidError) as exc_info:
            apply_batch(mixed, ops, T0)

        assert exc_info.value.result.summary.phase_violations == 1
        assert str(exc_info.value).startswith("Batch operation failed: 1 of 2")
        assert mixed == before

    def test_conflicting_operations_on_one_test(self, mixed):
        ops = [TestOperation("1A_T1", "pass"), TestOperation("1A_T1", "cancel", "duplicate")]

        with pytest.raises(BatchInvalidError) as exc_info:
            apply_batch(mixed, ops, T0)

        assert exc_info.value.result.invalid_operations[0].verb == "cancel"
        assert mixed.find_test("1A_T1").state == TestState.WIP
