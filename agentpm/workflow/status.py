"""Entity status values.

Epics, phases and tasks share one lifecycle (``Status``). Tests carry a
single product type (``TestState``) whose variants cover both the execution
lifecycle and the outcome. The two-field XML view (test_status + test_result)
is derived from it only at the storage boundary.

Usage:
    from agentpm.workflow.status import Status, TestState

    TestState.PASSING.status   # Status.DONE
    TestState.PASSING.result   # "passing"
"""

from enum import Enum
from typing import Optional

KINDS = ("epic", "phase", "task", "test")


class Status(Enum):
    """Lifecycle status for epics, phases and tasks."""

    PENDING = "pending"
    WIP = "wip"
    DONE = "done"
    CANCELLED = "cancelled"


class TestState(Enum):
    """Combined execution status and result of a test."""

    __test__ = False

    PENDING = "pending"
    WIP = "wip"
    PASSING = "passing"
    FAILING = "failing"
    CANCELLED = "cancelled"

    @property
    def status(self) -> Status:
        if self in (TestState.PASSING, TestState.FAILING):
            return Status.DONE
        return Status(self.value)

    @property
    def result(self) -> str:
        """Outcome token, empty unless the test is done."""
        if self in (TestState.PASSING, TestState.FAILING):
            return self.value
        return ""

    @property
    def is_terminal(self) -> bool:
        return self in (TestState.PASSING, TestState.FAILING, TestState.CANCELLED)

    @property
    def label(self) -> str:
        """Human-readable form, e.g. ``done/passing``."""
        if self.result:
            return f"done/{self.result}"
        return self.value


def parse_status(token: Optional[str]) -> Optional[Status]:
    """Parse a status token into Status.

    Returns None if the token is unknown.
    """
    if token is None:
        return None
    token = token.strip().lower()
    for status in Status:
        if status.value == token:
            return status
    return None


def parse_test_state(test_status: Optional[str], test_result: Optional[str]) -> tuple[TestState, Optional[str]]:
    """Combine the two XML fields into a TestState.

    Returns (state, warning). The warning is None when the fields were
    consistent; otherwise it describes how they were normalized.
    """
    status = parse_status(test_status)
    result = (test_result or "").strip().lower()

    if status is None:
        if result in ("passing", "failing"):
            warning = f"unknown test status '{test_status}' read as done" if test_status else None
            return TestState(result), warning
        if test_status:
            return TestState.PENDING, f"unknown test status '{test_status}' normalized to pending"
        return TestState.PENDING, None

    if status == Status.DONE:
        if result in ("passing", "failing"):
            return TestState(result), None
        return TestState.PASSING, f"done test without result '{test_result or ''}' treated as passing"

    state = TestState(status.value)
    if result:
        return state, f"result '{test_result}' ignored for {status.value} test"
    return state, None
