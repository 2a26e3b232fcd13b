"""
agentpm show - context for one phase, task or test.
"""

from agentpm.commands.transition import resolve_target
from agentpm.lib import queries
from agentpm.lib.session import Session
from agentpm.workflow import router


def cmd_show(args, session: Session) -> int:
    """Show an entity with its parent, children and (with --full) related events."""
    kind, entity_id = resolve_target(args.target, args.entity_id, ("phase", "task", "test"), "show")
    if kind is None:
        kind = router.resolve(entity_id)

    epic = session.load()
    payload = queries.show_entity(epic, kind, entity_id, full=args.full)
    entity = payload[kind]

    lines = [f"{kind.capitalize()}: {entity['id']} - {entity['name']}", "=" * 60, ""]
    for key, value in entity.items():
        if key in ("id", "name") or value is None:
            continue
        label = key.replace("_", " ").capitalize() + ":"
        lines.append(f"{label:<22}{value}")

    parent_key = {"task": "phase", "test": "task"}.get(kind)
    if parent_key and payload.get(parent_key):
        parent = payload[parent_key]
        lines.append("")
        lines.append(f"{parent_key.capitalize()}: {parent['id']} - {parent['name']} [{parent['status']}]")

    for section in ("tasks", "tests", "siblings"):
        items = payload.get(section)
        if items is None:
            continue
        lines.append("")
        lines.append(f"{section.capitalize()} ({len(items)}):")
        for item in items:
            status = item.get("status") or item.get("test_status", "")
            lines.append(f"  {item['id']}: {item['name']} [{status}]")

    if args.full:
        lines.append("")
        lines.append(f"Events ({len(payload['events'])}):")
        for event in payload["events"]:
            lines.append(f"  {event['timestamp']} {event['type']}: {event['data']}")

    session.emit(payload, lines, root=kind)
    return 0
