"""Shared fixtures: a small two-phase epic and its XML file."""

from datetime import datetime, timezone

import pytest

from agentpm.model.document import Epic, Phase, Task, Test
from agentpm.model.storage import save_epic
from agentpm.workflow.next_action import refresh
from agentpm.workflow.status import Status

CREATED = datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def epic():
    """Epic 8 in progress: phase 1A active with no task started, 1B pending.

    1A: tasks 1A_1 (Setup), 1A_2 (Models); tests 1A_T1 -> 1A_1, 1A_T2 -> 1A_2
    1B: task 1B_1 (Login); test 1B_T1 -> 1B_1
    """
    doc = Epic(
        id="8",
        name="Authentication",
        status=Status.WIP,
        created_at=CREATED,
        started_at=CREATED,
        assignee="agent",
        description="Token based login",
        phases=[
            Phase(id="1A", name="Foundation", status=Status.WIP, started_at=CREATED),
            Phase(id="1B", name="Features", deliverables="Login endpoint"),
        ],
        tasks=[
            Task(id="1A_1", phase_id="1A", name="Setup", acceptance_criteria="Config loads"),
            Task(id="1A_2", phase_id="1A", name="Models"),
            Task(id="1B_1", phase_id="1B", name="Login"),
        ],
        tests=[
            Test(id="1A_T1", task_id="1A_1", phase_id="1A", name="Config loads"),
            Test(id="1A_T2", task_id="1A_2", phase_id="1A", name="Models save"),
            Test(id="1B_T1", task_id="1B_1", phase_id="1B", name="Login works"),
        ],
    )
    refresh(doc)
    return doc


@pytest.fixture
def epic_file(tmp_path, epic):
    """The epic fixture saved as XML."""
    path = tmp_path / "epic-8.xml"
    save_epic(epic, path)
    return path
