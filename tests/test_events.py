"""Tests for agentpm.workflow.events module."""

from datetime import datetime, timezone

import pytest

from agentpm.errors import UsageError
from agentpm.model.document import Event
from agentpm.workflow.events import (
    EVENT_TYPES,
    describe,
    log_event,
    new_event_id,
    parse_files,
)
from agentpm.workflow.fsm import TRANSITIONS

T0 = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class TestEventTypes:
    """Every transition has an event type."""

    def test_every_verb_has_an_event_type(self):
        for kind, rows in TRANSITIONS.items():
            for row in rows:
                assert (kind, row["trigger"]) in EVENT_TYPES

    def test_describe(self, epic):
        assert describe("task", epic.find_task("1A_1"), "start") == "Task 1A_1 (Setup) started"
        assert describe("epic", epic, "pause") == "Epic 8 (Authentication) paused"

    def test_describe_with_reason(self, epic):
        test = epic.find_test("1A_T1")
        assert describe("test", test, "fail", "  bad config ") == "Test 1A_T1 (Config loads) failed: bad config"
        assert describe("test", test, "pass", "ignored") == "Test 1A_T1 (Config loads) passed"


class TestEventIds:
    """Event IDs are '<type>_<unix>' and unique."""

    def test_plain_id(self, epic):
        assert new_event_id(epic, "note", T0) == f"note_{int(T0.timestamp())}"

    def test_collision_suffix(self, epic):
        stamp = int(T0.timestamp())
        epic.events.append(Event(id=f"note_{stamp}", type="note", timestamp=T0))
        epic.events.append(Event(id=f"note_{stamp}_2", type="note", timestamp=T0))
        assert new_event_id(epic, "note", T0) == f"note_{stamp}_3"


class TestParseFiles:
    """--files parsing."""

    def test_empty(self):
        assert parse_files(None) == []
        assert parse_files("") == []

    def test_actions(self):
        assert parse_files("src/auth.py:added, tests/test_auth.py:MODIFIED") == [
            ("src/auth.py", "added"),
            ("tests/test_auth.py", "modified"),
        ]

    def test_default_action(self):
        assert parse_files("README.md") == [("README.md", "modified")]

    def test_invalid_action(self):
        with pytest.raises(UsageError, match="Invalid file action 'touched'"):
            parse_files("a.py:touched")


class TestLogEvent:
    """Free-form work log entries."""

    def test_appends_event_without_status_change(self, epic):
        epic.current_state.active_task = "1A_1"
        event = log_event(epic, "Implemented token refresh", T0, event_type="milestone",
                          files=[("src/auth.py", "modified")])
        assert epic.events == [event]
        assert event.type == "milestone"
        assert event.entity_id == "1A_1"
        assert event.data == "Implemented token refresh [files: src/auth.py:modified]"
        assert epic.find_task("1A_1").status.value == "pending"

    def test_default_type(self, epic):
        assert log_event(epic, "Did work", T0).type == "implementation"

    def test_unknown_type(self, epic):
        with pytest.raises(UsageError, match="Invalid event type"):
            log_event(epic, "x", T0, event_type="phase_started")

    def test_empty_message(self, epic):
        with pytest.raises(UsageError, match="must not be empty"):
            log_event(epic, "   ", T0)
        assert epic.events == []
