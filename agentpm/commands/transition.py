"""
agentpm start / done / cancel / pause / resume - lifecycle transitions.

Targets are either a kind keyword followed by an ID (`start task 1A_1`) or
a bare ID whose kind is detected from its shape (`start 1A_1`).
"""

from typing import Optional

from agentpm.errors import UsageError
from agentpm.lib.session import Session
from agentpm.workflow import router
from agentpm.workflow.autonext import select_next
from agentpm.workflow.engine import TransitionResult, apply
from agentpm.workflow.prerequisites import TransitionOptions


def resolve_target(
    target: str, entity_id: Optional[str], allowed: tuple[str, ...], command: str
) -> tuple[Optional[str], str]:
    """Turn 'KIND ID', 'epic' or a bare ID into (kind, id).

    kind is None for a bare ID; the router picks the kind when dispatching.
    """
    if target in allowed:
        if target == "epic":
            return "epic", ""
        if not entity_id:
            raise UsageError(f"'{command} {target}' requires an ID")
        return target, entity_id
    if target in ("epic", "phase", "task", "test"):
        raise UsageError(f"'{command}' does not apply to a {target}")
    if entity_id:
        raise UsageError(f"Unexpected argument '{entity_id}' after ID {target}")
    kind = router.resolve(target)
    if kind not in allowed:
        raise UsageError(f"'{command}' does not apply to {kind} {target}")
    return None, target


def run_transition(
    session: Session,
    kind: Optional[str],
    entity_id: str,
    verb: str,
    reason: Optional[str] = None,
    options: Optional[TransitionOptions] = None,
) -> int:
    """Load, apply one transition, save if anything changed, report.

    A kind of None routes the bare ID by its shape.
    """
    epic = session.load()
    options = options or session.options()
    if kind is None:
        result = router.dispatch(epic, entity_id, verb, session.timestamp, reason, options)
    else:
        result = apply(epic, kind, entity_id, verb, session.timestamp, reason, options)
    if not result.already_in_target:
        session.save(epic)
    report(session, [result], epic.current_state.next_action)
    return 0


def report(session: Session, results: list[TransitionResult], next_action: str = "") -> None:
    payload = {"transitions": [r.to_dict() for r in results]}
    if next_action:
        payload["next_action"] = next_action

    lines = []
    for r in results:
        label = f"{r.kind.capitalize()} {r.entity_id}"
        if r.already_in_target:
            lines.append(f"{label} is already {r.to_status}; nothing to do.")
        else:
            lines.append(f"{label}: {r.from_status} -> {r.to_status}")
        for warning in r.warnings:
            lines.append(f"WARNING: {warning}")
    if next_action:
        lines.append("")
        lines.append(f"Next: {next_action}")
    session.emit(payload, lines)


def cmd_start(args, session: Session) -> int:
    """Start the epic, a phase, a task, a test, or the next piece of work."""
    if args.target == "next":
        if args.entity_id:
            raise UsageError("'start next' takes no ID")
        return _start_next(args, session)

    kind, entity_id = resolve_target(args.target, args.entity_id, ("epic", "phase", "task", "test"), "start")
    options = session.options(allow_failing_tests=args.allow_failing_tests)
    return run_transition(session, kind, entity_id, "start", options=options)


def _start_next(args, session: Session) -> int:
    epic = session.load()
    result = select_next(epic, session.timestamp, session.options(allow_failing_tests=args.allow_failing_tests))
    if result.changed:
        session.save(result.epic)

    payload = result.to_dict()
    payload["next_action"] = result.epic.current_state.next_action
    lines = [result.message]
    for t in result.transitions:
        lines.append(f"  {t.kind.capitalize()} {t.entity_id}: {t.from_status} -> {t.to_status}")
    lines.append("")
    lines.append(f"Next: {result.epic.current_state.next_action}")
    session.emit(payload, lines)
    return 0


def cmd_done(args, session: Session) -> int:
    """Complete the epic, a phase or a task."""
    kind, entity_id = resolve_target(args.target, args.entity_id, ("epic", "phase", "task"), "done")
    options = session.options(allow_incomplete_tests=args.allow_incomplete_tests)
    return run_transition(session, kind, entity_id, "complete", options=options)


def cmd_cancel(args, session: Session) -> int:
    """Cancel a task (or a test, when given a test ID) with an optional reason."""
    rest = list(args.rest)
    if args.target in ("task", "test"):
        if not rest:
            raise UsageError(f"'cancel {args.target}' requires an ID")
        kind, entity_id = args.target, rest.pop(0)
    else:
        kind, entity_id = resolve_target(args.target, None, ("task", "test"), "cancel")
    reason = " ".join(rest) or None
    return run_transition(session, kind, entity_id, "cancel", reason=reason)


def cmd_pause(args, session: Session) -> int:
    return run_transition(session, "epic", "", "pause")


def cmd_resume(args, session: Session) -> int:
    return run_transition(session, "epic", "", "resume")
