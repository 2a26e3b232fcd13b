"""Event types, event text, and work log entries."""

from datetime import datetime
from typing import Optional

from agentpm.errors import UsageError
from agentpm.lib.constants import (
    DEFAULT_FILE_ACTION,
    DEFAULT_LOG_EVENT_TYPE,
    FILE_ACTIONS,
    LOG_EVENT_TYPES,
)
from agentpm.model.document import Epic, Event

# (kind, verb) -> event type
EVENT_TYPES = {
    ("epic", "start"): "epic_started",
    ("epic", "pause"): "epic_paused",
    ("epic", "resume"): "epic_resumed",
    ("epic", "complete"): "epic_completed",
    ("phase", "start"): "phase_started",
    ("phase", "complete"): "phase_completed",
    ("task", "start"): "task_started",
    ("task", "complete"): "task_completed",
    ("task", "cancel"): "task_cancelled",
    ("test", "start"): "test_started",
    ("test", "pass"): "test_passed",
    ("test", "fail"): "test_failed",
    ("test", "cancel"): "test_cancelled",
}

# Past tense used in event text
_PAST = {
    "start": "started",
    "pause": "paused",
    "resume": "resumed",
    "complete": "completed",
    "cancel": "cancelled",
    "pass": "passed",
    "fail": "failed",
}


def describe(kind: str, entity, verb: str, reason: Optional[str] = None) -> str:
    """Event text, e.g. 'Task 1A_1 (Setup) started' or 'Test 1A_T1 (Login) failed: timeout'."""
    name = getattr(entity, "name", "")
    label = f"{kind.capitalize()} {entity.id}"
    if name:
        label += f" ({name})"
    text = f"{label} {_PAST[verb]}"
    if reason and reason.strip() and verb in ("fail", "cancel"):
        text += f": {reason.strip()}"
    return text


def new_event_id(epic: Epic, event_type: str, timestamp: datetime) -> str:
    """Event ID '<type>_<unix>', suffixed when that ID is already taken."""
    taken = {e.id for e in epic.events}
    base = f"{event_type}_{int(timestamp.timestamp())}"
    event_id = base
    suffix = 2
    while event_id in taken:
        event_id = f"{base}_{suffix}"
        suffix += 1
    return event_id


def make_event(epic: Epic, event_type: str, timestamp: datetime, data: str, entity_id: str = "") -> Event:
    return Event(
        id=new_event_id(epic, event_type, timestamp),
        type=event_type,
        timestamp=timestamp,
        data=data,
        entity_id=entity_id,
    )


def parse_files(value: Optional[str]) -> list[tuple[str, str]]:
    """Parse '--files' as 'path[:action],...'; action defaults to modified."""
    if not value:
        return []
    files = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        path, _, action = item.rpartition(":")
        if not path:
            path, action = action, DEFAULT_FILE_ACTION
        action = action.strip().lower()
        if action not in FILE_ACTIONS:
            raise UsageError(f"Invalid file action '{action}' for {path} (expected one of: {', '.join(FILE_ACTIONS)})")
        files.append((path.strip(), action))
    return files


def log_event(
    epic: Epic,
    message: str,
    timestamp: datetime,
    event_type: str = DEFAULT_LOG_EVENT_TYPE,
    files: Optional[list[tuple[str, str]]] = None,
) -> Event:
    """Append a free-form work log entry; statuses are untouched."""
    if event_type not in LOG_EVENT_TYPES:
        raise UsageError(f"Invalid event type '{event_type}' (expected one of: {', '.join(LOG_EVENT_TYPES)})")
    if not message or not message.strip():
        raise UsageError("Log message must not be empty")
    data = message.strip()
    if files:
        data += " [files: " + ", ".join(f"{path}:{action}" for path, action in files) + "]"
    event = make_event(epic, event_type, timestamp, data, entity_id=epic.current_state.active_task)
    epic.append_event(event)
    return event
