"""Tests for agentpm.lib.queries, suggest and timeline modules."""

from datetime import datetime, timedelta, timezone

import pytest

from agentpm.errors import NotFoundError
from agentpm.lib import queries
from agentpm.lib.suggest import find_similar, not_found
from agentpm.lib.timeline import format_event_oneline
from agentpm.model.document import Event
from agentpm.workflow.engine import apply
from agentpm.workflow.events import log_event
from agentpm.workflow.status import Status, TestState

T0 = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def worked(epic):
    """Epic with some history: 1A_1 active, 1A_T1 failing, a log entry."""
    apply(epic, "task", "1A_1", "start", T0)
    apply(epic, "test", "1A_T1", "fail", T0 + timedelta(minutes=1), reason="timeout")
    log_event(epic, "Investigating timeout", T0 + timedelta(minutes=2), event_type="issue")
    return epic


class TestStatusSummary:
    """Progress overview."""

    def test_counts(self, worked):
        worked.find_task("1A_2").status = Status.CANCELLED
        worked.find_test("1B_T1").state = TestState.PASSING
        summary = queries.status_summary(worked)
        progress = summary["progress"]
        assert progress["tasks_total"] == 2
        assert progress["tasks_done"] == 0
        assert progress["tests_passing"] == 1
        assert progress["tests_failing"] == 1
        assert progress["completion_percent"] == 0
        assert summary["current_state"]["active_task"] == "1A_1"
        assert summary["epic"]["paused"] is False

    def test_phase_breakdown(self, worked):
        worked.find_task("1B_1").status = Status.DONE
        phases = queries.status_summary(worked)["phases"]
        assert phases[1] == {"id": "1B", "name": "Features", "status": "pending", "tasks_done": 1, "tasks_total": 1}


class TestWorkQueries:
    """current / pending / failing."""

    def test_current(self, worked):
        current = queries.current_work(worked)
        assert current["active_phase"] == {"id": "1A", "name": "Foundation"}
        assert current["active_task"] == {"id": "1A_1", "name": "Setup"}
        assert current["open_tests"] == []
        assert current["failing_tests"] == ["1A_T1"]
        assert current["next_action"] == "Fix failing tests: 1A_T1"

    def test_current_lists_open_tests(self, epic):
        epic.find_task("1A_1").status = Status.WIP
        assert queries.current_work(epic)["open_tests"] == [
            {"id": "1A_T1", "name": "Config loads", "status": "pending"}
        ]

    def test_pending(self, worked):
        pending = queries.pending_work(worked)
        assert [p["id"] for p in pending["phases"]] == ["1A", "1B"]
        assert [t["id"] for t in pending["tasks"]] == ["1A_1", "1A_2", "1B_1"]
        assert [t["id"] for t in pending["tests"]] == ["1A_T2", "1B_T1"]

    def test_failing(self, worked):
        failing = queries.failing_report(worked)["tests"]
        assert failing[0]["id"] == "1A_T1"
        assert failing[0]["failure_note"] == "timeout"
        assert failing[0]["failed_at"] == "2025-01-15T10:01:00Z"


class TestEvents:
    """Recent event listing."""

    def test_newest_first(self, worked):
        events = queries.recent_events(worked)
        assert [e.type for e in events] == ["issue", "test_failed", "task_started"]

    def test_limit_and_type(self, worked):
        assert len(queries.recent_events(worked, limit=1)) == 1
        assert len(queries.recent_events(worked, limit=0)) == 3
        assert [e.type for e in queries.recent_events(worked, event_type="task_started")] == ["task_started"]

    def test_oneline(self):
        event = Event(id="e1", type="test_failed", timestamp=T0, data="Test 1A_T1 (Login) failed")
        assert format_event_oneline(event) == "2025-01-15 10:00 [x] Test 1A_T1 (Login) failed"
        assert "\033[31m" in format_event_oneline(event, colorize=True)


class TestShowEntity:
    """show phase / task / test."""

    def test_show_task(self, worked):
        payload = queries.show_entity(worked, "task", "1A_1")
        assert payload["task"]["status"] == "wip"
        assert payload["phase"]["id"] == "1A"
        assert payload["tests"] == [{"id": "1A_T1", "name": "Config loads", "status": "done/failing"}]
        assert "events" not in payload

    def test_show_task_full(self, worked):
        payload = queries.show_entity(worked, "task", "1A_1", full=True)
        assert [s["id"] for s in payload["siblings"]] == ["1A_2"]
        assert [e["type"] for e in payload["events"]] == ["task_started", "test_failed", "issue"]
        assert payload["tests"][0]["failure_note"] == "timeout"

    def test_show_phase(self, worked):
        payload = queries.show_entity(worked, "phase", "1B")
        assert payload["phase"]["deliverables"] == "Login endpoint"
        assert [t["id"] for t in payload["tasks"]] == ["1B_1"]

    def test_show_test(self, worked):
        payload = queries.show_entity(worked, "test", "1A_T1")
        assert payload["test"]["test_status"] == "done"
        assert payload["test"]["test_result"] == "failing"
        assert payload["task"]["id"] == "1A_1"

    def test_show_unknown(self, worked):
        with pytest.raises(NotFoundError, match="did you mean 1B_T1"):
            queries.show_entity(worked, "test", "1B_T9")


class TestFindSimilar:
    """Did-you-mean suggestions."""

    def test_close_match(self):
        assert find_similar("1a_t1", ["1A_T1", "1B_T1"]) == "1A_T1"

    def test_no_match(self):
        assert find_similar("zzz", ["1A_T1"]) is None

    def test_exact_match_skipped(self):
        assert find_similar("1A", ["1A"]) is None

    def test_empty_inputs(self):
        assert find_similar("", ["1A"]) is None
        assert find_similar("1A", []) is None

    def test_separator_slips(self):
        assert find_similar("1a-t1", ["1B_T1", "1A_T1"]) == "1A_T1"

    def test_same_phase_preferred_on_tie(self):
        assert find_similar("1B_T2", ["1A_T2", "1B_T1"]) == "1B_T1"

    def test_not_found_carries_suggestion(self):
        error = not_found("task", "1A_7", ["1A_1", "2B_4"])
        assert error.suggestion == "1A_1"
        assert str(error) == "Task 1A_7 not found (did you mean 1A_1?)"
