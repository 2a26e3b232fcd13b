"""
XML load/save for epic documents.

Layout:

    <epic id="8" name="..." status="wip" created_at="2025-01-15T10:00:00Z">
      <assignee>agent</assignee>
      <description>...</description>
      <current_state>
        <active_phase>1A</active_phase><active_task>1A_1</active_task>
        <next_action>Continue work on: Setup</next_action>
      </current_state>
      <phases><phase id="1A" name="..." status="wip">...</phase></phases>
      <tasks><task id="1A_1" phase_id="1A" name="..." status="wip" assignee="">...</task></tasks>
      <tests><test id="1A_T1" task_id="1A_1" phase_id="1A" name="..."
                   test_status="done" test_result="passing">...</test></tests>
      <events><event id="..." type="task_started" timestamp="..." entity_id="1A_1">text</event></events>
    </epic>

Timestamps other than created_at and event timestamps are child elements.
Saving always goes through a temp file and os.replace.
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from agentpm.errors import DocumentError, StorageError
from agentpm.lib.files import atomic_write_text
from agentpm.lib.timeutil import format_timestamp, parse_timestamp
from agentpm.model.document import CurrentState, Epic, Event, Phase, Task, Test
from agentpm.model.integrity import reference_problems
from agentpm.workflow.status import Status, parse_status, parse_test_state

logger = logging.getLogger(__name__)


def load_epic(path: Path, strict: bool = True) -> Epic:
    """Load an epic document.

    Args:
        path: XML file
        strict: Reject documents with duplicate IDs or dangling references

    Raises:
        StorageError: File missing, unreadable, or not XML
        DocumentError: strict and the document breaks referential integrity
    """
    path = Path(path)
    if not path.exists():
        raise StorageError(f"Epic file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Cannot read epic file {path}: {e}") from None

    epic = parse_epic(text, source=str(path))

    if strict:
        problems = reference_problems(epic)
        if problems:
            raise DocumentError(path, [p.message for p in problems])

    logger.debug(f"Loaded epic {epic.id} from {path}: {len(epic.phases)} phases, "
                 f"{len(epic.tasks)} tasks, {len(epic.tests)} tests")
    return epic


def save_epic(epic: Epic, path: Path) -> None:
    """Write the epic atomically.

    Raises:
        StorageError: The file could not be written; the previous file is intact
    """
    path = Path(path)
    try:
        atomic_write_text(path, serialize_epic(epic))
    except OSError as e:
        raise StorageError(f"Cannot write epic file {path}: {e}") from None
    logger.debug(f"Saved epic {epic.id} to {path}")


# Parsing

def parse_epic(text: str, source: str = "<string>") -> Epic:
    """Parse XML text into an Epic, normalizing unknown status tokens."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise StorageError(f"Invalid XML in {source}: {e}") from None
    if root.tag != "epic":
        raise StorageError(f"Invalid epic document {source}: root element is <{root.tag}>, expected <epic>")

    warnings: list[str] = []

    epic = Epic(
        id=root.get("id", ""),
        name=root.get("name", ""),
        status=_status(root.get("status"), f"epic {root.get('id', '')}", warnings),
        created_at=_timestamp(root.get("created_at"), "epic created_at", warnings),
        started_at=_child_timestamp(root, "started_at", warnings),
        completed_at=_child_timestamp(root, "completed_at", warnings),
        assignee=_child_text(root, "assignee"),
        description=_child_text(root, "description"),
    )

    state = root.find("current_state")
    if state is not None:
        epic.current_state = CurrentState(
            active_phase=_child_text(state, "active_phase"),
            active_task=_child_text(state, "active_task"),
            next_action=_child_text(state, "next_action"),
        )

    for el in root.findall("phases/phase"):
        epic.phases.append(Phase(
            id=el.get("id", ""),
            name=el.get("name", ""),
            status=_status(el.get("status"), f"phase {el.get('id', '')}", warnings),
            description=_child_text(el, "description"),
            deliverables=_child_text(el, "deliverables"),
            started_at=_child_timestamp(el, "started_at", warnings),
            completed_at=_child_timestamp(el, "completed_at", warnings),
        ))

    for el in root.findall("tasks/task"):
        epic.tasks.append(Task(
            id=el.get("id", ""),
            phase_id=el.get("phase_id", ""),
            name=el.get("name", ""),
            status=_status(el.get("status"), f"task {el.get('id', '')}", warnings),
            description=_child_text(el, "description"),
            acceptance_criteria=_child_text(el, "acceptance_criteria"),
            assignee=el.get("assignee", "") or _child_text(el, "assignee"),
            started_at=_child_timestamp(el, "started_at", warnings),
            completed_at=_child_timestamp(el, "completed_at", warnings),
            cancelled_at=_child_timestamp(el, "cancelled_at", warnings),
        ))

    for el in root.findall("tests/test"):
        epic.tests.append(_parse_test(el, epic, warnings))

    for el in root.findall("events/event"):
        epic.events.append(Event(
            id=el.get("id", ""),
            type=el.get("type", ""),
            timestamp=_timestamp(el.get("timestamp"), f"event {el.get('id', '')}", warnings),
            data=(el.text or "").strip(),
            entity_id=el.get("entity_id", ""),
        ))

    for warning in warnings:
        logger.warning(f"{source}: {warning}")
    epic.warnings = warnings
    return epic


def _parse_test(el: ET.Element, epic: Epic, warnings: list[str]) -> Test:
    test_id = el.get("id", "")
    raw_status = el.get("test_status") or el.get("status")
    raw_result = el.get("test_result") or el.get("result")
    state, warning = parse_test_state(raw_status, raw_result)
    if warning:
        warnings.append(f"test {test_id}: {warning}")

    task_id = el.get("task_id", "")
    phase_id = el.get("phase_id", "")
    if not phase_id:
        task = epic.find_task(task_id)
        phase_id = task.phase_id if task else ""

    return Test(
        id=test_id,
        task_id=task_id,
        phase_id=phase_id,
        name=el.get("name", ""),
        state=state,
        description=_child_text(el, "description"),
        started_at=_child_timestamp(el, "started_at", warnings),
        passed_at=_child_timestamp(el, "passed_at", warnings),
        failed_at=_child_timestamp(el, "failed_at", warnings),
        cancelled_at=_child_timestamp(el, "cancelled_at", warnings),
        failure_note=_child_text(el, "failure_note"),
        cancellation_reason=_child_text(el, "cancellation_reason"),
    )


def _status(token: Optional[str], where: str, warnings: list[str]) -> Status:
    status = parse_status(token)
    if status is None:
        if token:
            warnings.append(f"{where}: unknown status '{token}' normalized to pending")
        return Status.PENDING
    return status


def _timestamp(value: Optional[str], where: str, warnings: list[str]):
    try:
        return parse_timestamp(value)
    except ValueError:
        warnings.append(f"{where}: invalid timestamp '{value}' ignored")
        return None


def _child_text(el: ET.Element, tag: str) -> str:
    child = el.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _child_timestamp(el: ET.Element, tag: str, warnings: list[str]):
    value = _child_text(el, tag)
    return _timestamp(value, f"{el.tag} {el.get('id', '')} {tag}", warnings) if value else None


# Serialization

def serialize_epic(epic: Epic) -> str:
    """Render the epic as an indented XML document."""
    root = to_element(epic)
    ET.indent(root, space="  ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"


def to_element(epic: Epic) -> ET.Element:
    """The <epic> element tree exactly as save_epic() writes it."""
    root = ET.Element("epic", {
        "id": epic.id,
        "name": epic.name,
        "status": epic.status.value,
        "created_at": format_timestamp(epic.created_at),
    })
    _add_text(root, "assignee", epic.assignee)
    _add_text(root, "description", epic.description)
    _add_text(root, "started_at", format_timestamp(epic.started_at))
    _add_text(root, "completed_at", format_timestamp(epic.completed_at))

    state = ET.SubElement(root, "current_state")
    ET.SubElement(state, "active_phase").text = epic.current_state.active_phase
    ET.SubElement(state, "active_task").text = epic.current_state.active_task
    ET.SubElement(state, "next_action").text = epic.current_state.next_action

    phases = ET.SubElement(root, "phases")
    for phase in epic.phases:
        el = ET.SubElement(phases, "phase", {"id": phase.id, "name": phase.name, "status": phase.status.value})
        _add_text(el, "description", phase.description)
        _add_text(el, "deliverables", phase.deliverables)
        _add_text(el, "started_at", format_timestamp(phase.started_at))
        _add_text(el, "completed_at", format_timestamp(phase.completed_at))

    tasks = ET.SubElement(root, "tasks")
    for task in epic.tasks:
        el = ET.SubElement(tasks, "task", {
            "id": task.id,
            "phase_id": task.phase_id,
            "name": task.name,
            "status": task.status.value,
            "assignee": task.assignee,
        })
        _add_text(el, "description", task.description)
        _add_text(el, "acceptance_criteria", task.acceptance_criteria)
        _add_text(el, "started_at", format_timestamp(task.started_at))
        _add_text(el, "completed_at", format_timestamp(task.completed_at))
        _add_text(el, "cancelled_at", format_timestamp(task.cancelled_at))

    tests = ET.SubElement(root, "tests")
    for test in epic.tests:
        attrs = {
            "id": test.id,
            "task_id": test.task_id,
            "phase_id": test.phase_id,
            "name": test.name,
            "test_status": test.status.value,
        }
        if test.result:
            attrs["test_result"] = test.result
        el = ET.SubElement(tests, "test", attrs)
        _add_text(el, "description", test.description)
        _add_text(el, "started_at", format_timestamp(test.started_at))
        _add_text(el, "passed_at", format_timestamp(test.passed_at))
        _add_text(el, "failed_at", format_timestamp(test.failed_at))
        _add_text(el, "cancelled_at", format_timestamp(test.cancelled_at))
        _add_text(el, "failure_note", test.failure_note)
        _add_text(el, "cancellation_reason", test.cancellation_reason)

    events = ET.SubElement(root, "events")
    for event in epic.events:
        attrs = {"id": event.id, "type": event.type, "timestamp": format_timestamp(event.timestamp)}
        if event.entity_id:
            attrs["entity_id"] = event.entity_id
        ET.SubElement(events, "event", attrs).text = event.data

    return root


def _add_text(parent: ET.Element, tag: str, value: str) -> None:
    """Add <tag>value</tag>, skipping empty values."""
    if value:
        ET.SubElement(parent, tag).text = value
