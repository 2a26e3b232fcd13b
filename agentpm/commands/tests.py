"""
agentpm pass-test / fail-test / cancel-test / batch-test.

Several IDs given to pass-test, and every batch-test call, go through the
batch validator: either all operations apply or none do.
"""

from pathlib import Path

from agentpm.commands.transition import report, run_transition
from agentpm.errors import UsageError
from agentpm.lib import validate
from agentpm.lib.session import Session
from agentpm.workflow.batch import TestOperation, apply_batch, validate_batch


def cmd_pass_test(args, session: Session) -> int:
    """Mark one or more tests as passing."""
    if len(args.ids) == 1:
        return run_transition(session, "test", args.ids[0], "pass")
    operations = [TestOperation(test_id=test_id, verb="pass") for test_id in args.ids]
    return _run_batch(session, operations)


def cmd_fail_test(args, session: Session) -> int:
    """Mark a test as failing with an optional note."""
    return run_transition(session, "test", args.id, "fail", reason=args.note)


def cmd_cancel_test(args, session: Session) -> int:
    """Cancel a test; a reason is required."""
    return run_transition(session, "test", args.id, "cancel", reason=args.reason)


def cmd_batch_test(args, session: Session) -> int:
    """Apply a list of test operations all-or-nothing."""
    operations = [TestOperation.parse(op) for op in args.operations]
    if args.input:
        operations.extend(load_operations(Path(args.input)))

    if args.dry_run:
        epic = session.load()
        result = validate_batch(epic, operations, session.options(), session.timestamp)
        lines = [f"{result.summary.valid} of {result.summary.total} operations are valid"]
        if result.error_message:
            lines = [result.error_message]
        session.emit(result.to_dict(), lines)
        return 0 if result.valid else 1

    return _run_batch(session, operations)


def load_operations(path: Path) -> list[TestOperation]:
    """Read a JSON list of {test_id, verb, reason?} objects."""
    try:
        data = validate.load_json(path, "batch_operations")
    except validate.SchemaError as e:
        raise UsageError(f"Invalid batch input {path}: {e}") from None
    return [TestOperation.from_dict(item) for item in data]


def _run_batch(session: Session, operations: list[TestOperation]) -> int:
    epic = session.load()
    updated, results = apply_batch(epic, operations, session.timestamp, session.options())
    if any(not r.already_in_target for r in results):
        session.save(updated)
    report(session, results, updated.current_state.next_action)
    return 0
