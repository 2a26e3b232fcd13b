"""
agentpm log - append a work log entry to the epic's event history.

    agentpm log "Implemented token refresh" --type implementation \
        --files "src/auth.py:modified,tests/test_auth.py:added"
"""

from agentpm.lib.queries import describe_event
from agentpm.lib.session import Session
from agentpm.workflow.events import log_event, parse_files


def cmd_log(args, session: Session) -> int:
    """Append an event; no status changes."""
    files = parse_files(args.files)
    epic = session.load()
    event = log_event(epic, args.message, session.timestamp, event_type=args.type, files=files)
    session.save(epic)

    payload = {"event": describe_event(event)}
    session.emit(payload, [f"Logged {event.type}: {event.data}"], root="log")
    return 0
