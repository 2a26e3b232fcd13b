"""
agentpm status / current / pending / failing / events - read-only reports.
"""

import sys

from agentpm.lib import queries
from agentpm.lib.session import Session
from agentpm.lib.timeline import format_event_oneline


def cmd_status(args, session: Session) -> int:
    """Show epic progress overview."""
    epic = session.load()
    payload = queries.status_summary(epic)
    progress = payload["progress"]
    state = payload["current_state"]

    status = epic.status.value + (" (paused)" if epic.is_paused else "")
    lines = [
        f"Epic: {epic.id} - {epic.name}",
        "=" * 60,
        "",
        f"Status:         {status}",
        f"Assignee:       {epic.assignee or '-'}",
        f"Progress:       {progress['completion_percent']}% "
        f"({progress['tasks_done']}/{progress['tasks_total']} tasks)",
        f"Phases:         {progress['phases_done']}/{progress['phases_total']} done",
        f"Tests:          {progress['tests_passing']} passing, {progress['tests_failing']} failing, "
        f"{progress['tests_total']} total",
        "",
        f"Active phase:   {state['active_phase'] or '-'}",
        f"Active task:    {state['active_task'] or '-'}",
        f"Next action:    {state['next_action'] or '-'}",
        "",
    ]
    for phase in payload["phases"]:
        marker = {"done": "[x]", "wip": "[>]", "cancelled": "[-]"}.get(phase["status"], "[ ]")
        lines.append(f"  {marker} {phase['id']}: {phase['name']} ({phase['tasks_done']}/{phase['tasks_total']} tasks)")

    session.emit(payload, lines, root="status")
    return 0


def cmd_current(args, session: Session) -> int:
    """Show the active phase, task and what to do next."""
    epic = session.load()
    payload = queries.current_work(epic)

    phase = payload["active_phase"]
    task = payload["active_task"]
    lines = [
        f"Epic status:    {payload['epic_status']}",
        f"Active phase:   {phase['id'] + ' - ' + phase['name'] if phase else '-'}",
        f"Active task:    {task['id'] + ' - ' + task['name'] if task else '-'}",
    ]
    if payload["open_tests"]:
        lines.append("Open tests:")
        for test in payload["open_tests"]:
            lines.append(f"  {test['id']}: {test['name']} ({test['status']})")
    if payload["failing_tests"]:
        lines.append(f"Failing tests:  {', '.join(payload['failing_tests'])}")
    lines.append(f"Next action:    {payload['next_action'] or '-'}")

    session.emit(payload, lines, root="current")
    return 0


def cmd_pending(args, session: Session) -> int:
    """List unfinished phases, tasks and tests."""
    epic = session.load()
    payload = queries.pending_work(epic)

    lines = []
    for section in ("phases", "tasks", "tests"):
        items = payload[section]
        lines.append(f"{section.capitalize()} ({len(items)}):")
        if not items:
            lines.append("  (none)")
        for item in items:
            lines.append(f"  {item['id']}: {item['name']} [{item['status']}]")
        lines.append("")

    session.emit(payload, lines[:-1], root="pending")
    return 0


def cmd_failing(args, session: Session) -> int:
    """List failing tests with their notes."""
    epic = session.load()
    payload = queries.failing_report(epic)

    tests = payload["tests"]
    if not tests:
        lines = ["No failing tests."]
    else:
        lines = [f"Failing tests ({len(tests)}):"]
        for test in tests:
            lines.append(f"  {test['id']}: {test['name']} (task {test['task_id']}, phase {test['phase_id']})")
            if test["failure_note"]:
                lines.append(f"      {test['failure_note']}")

    session.emit(payload, lines, root="failing")
    return 0


def cmd_events(args, session: Session) -> int:
    """Show recent events, newest first."""
    epic = session.load()
    events = queries.recent_events(epic, limit=args.limit, event_type=args.type)
    payload = {"events": [queries.describe_event(e) for e in events]}
    if not events:
        lines = ["No events found."]
    else:
        colorize = not args.no_color and sys.stdout.isatty()
        lines = [format_event_oneline(event, colorize=colorize) for event in events]
        lines.append("")
        lines.append(f"{len(events)} event(s)")

    session.emit(payload, lines, root="events")
    return 0
