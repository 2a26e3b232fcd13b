"""
Batch validation for test transitions.

A batch is all-or-nothing. validate_batch() checks the operations in order
with the same predicates the engine uses, each against the state the earlier
valid operations leave behind on a scratch copy; the epic itself is never
mutated. apply_batch() only applies when every operation is valid, and does
so on a copy so a late failure cannot leave the document half-updated.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from agentpm.errors import (
    AgentPMError,
    BatchInvalidError,
    NotFoundError,
    PreconditionError,
    UsageError,
)
from agentpm.model.document import Epic, Test
from agentpm.workflow.engine import TransitionResult, apply
from agentpm.workflow.prerequisites import TransitionOptions, check_transition

BATCH_VERBS = ("pass", "fail", "cancel")

# Predicate codes counted as phase violations; everything else is a status violation
PHASE_VIOLATION_CODES = ("phase_not_active",)


@dataclass
class TestOperation:
    """One requested test transition."""
    __test__ = False

    test_id: str
    verb: str
    reason: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "TestOperation":
        """Parse 'ID:verb[:reason]', e.g. '1A_T1:fail:timeout on login'."""
        parts = text.split(":", 2)
        if len(parts) < 2 or not parts[0].strip() or not parts[1].strip():
            raise UsageError(f"Invalid batch operation '{text}' (expected ID:verb[:reason])")
        reason = parts[2] if len(parts) == 3 else None
        return cls(test_id=parts[0].strip(), verb=parts[1].strip().lower(), reason=reason)

    @classmethod
    def from_dict(cls, data: dict) -> "TestOperation":
        if not isinstance(data, dict) or "test_id" not in data or "verb" not in data:
            raise UsageError(f"Invalid batch operation {data!r} (expected test_id and verb)")
        return cls(
            test_id=str(data["test_id"]),
            verb=str(data["verb"]).lower(),
            reason=data.get("reason"),
        )


@dataclass
class OperationError:
    kind: str
    message: str
    entity: str
    code: str = ""

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message, "entity": self.entity}
        if self.code:
            data["code"] = self.code
        return data


@dataclass
class ValidOperation:
    test_id: str
    test_name: str
    verb: str
    test: Optional[Test] = None

    def to_dict(self) -> dict:
        return {"test_id": self.test_id, "test_name": self.test_name, "verb": self.verb}


@dataclass
class InvalidOperation:
    test_id: str
    verb: str
    error: OperationError

    def to_dict(self) -> dict:
        return {"test_id": self.test_id, "verb": self.verb, "error": self.error.to_dict()}


@dataclass
class BatchSummary:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    tests_not_found: int = 0
    phase_violations: int = 0
    status_violations: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "tests_not_found": self.tests_not_found,
            "phase_violations": self.phase_violations,
            "status_violations": self.status_violations,
        }


@dataclass
class BatchResult:
    valid: bool
    valid_operations: list[ValidOperation] = field(default_factory=list)
    invalid_operations: list[InvalidOperation] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)
    error_message: str = ""

    def to_dict(self) -> dict:
        data = {
            "valid": self.valid,
            "valid_operations": [op.to_dict() for op in self.valid_operations],
            "invalid_operations": [op.to_dict() for op in self.invalid_operations],
            "summary": self.summary.to_dict(),
        }
        if self.error_message:
            data["error_message"] = self.error_message
        return data


def validate_batch(
    epic: Epic,
    operations: list[TestOperation],
    options: Optional[TransitionOptions] = None,
    timestamp: Optional[datetime] = None,
) -> BatchResult:
    """Validate every operation in order; never mutates the epic.

    Operations after the first see the effect of the earlier valid ones, so
    "1A_T1:pass" followed by "1A_T1:cancel" is reported the same way
    applying it would fail. timestamp only stamps the scratch copy.

    Raises:
        UsageError: If operations is empty
    """
    if not operations:
        raise UsageError("no operations provided for batch validation")

    result = BatchResult(valid=True)
    result.summary.total = len(operations)
    scratch = copy.deepcopy(epic)
    timestamp = timestamp or datetime.now(timezone.utc)

    for op in operations:
        error = _check_operation(scratch, op, options)
        if error is None:
            apply(scratch, "test", op.test_id, op.verb, timestamp, op.reason, options)
            test = epic.find_test(op.test_id)
            result.valid_operations.append(
                ValidOperation(test_id=op.test_id, test_name=test.name, verb=op.verb, test=test)
            )
            continue

        result.invalid_operations.append(InvalidOperation(test_id=op.test_id, verb=op.verb, error=error))
        if error.kind == NotFoundError.kind:
            result.summary.tests_not_found += 1
        elif error.code in PHASE_VIOLATION_CODES:
            result.summary.phase_violations += 1
        else:
            result.summary.status_violations += 1

    result.summary.valid = len(result.valid_operations)
    result.summary.invalid = len(result.invalid_operations)
    result.valid = result.summary.invalid == 0
    if not result.valid:
        result.error_message = format_error_message(result)
    return result


def apply_batch(
    epic: Epic,
    operations: list[TestOperation],
    timestamp: datetime,
    options: Optional[TransitionOptions] = None,
) -> tuple[Epic, list[TransitionResult]]:
    """Validate, then apply every operation in order.

    Returns the updated copy of the epic and one result per operation. The
    epic passed in is never modified.

    Raises:
        BatchInvalidError: If any operation is invalid
    """
    validation = validate_batch(epic, operations, options, timestamp)
    if not validation.valid:
        raise BatchInvalidError(validation)

    working = copy.deepcopy(epic)
    results = []
    for op in operations:
        results.append(apply(working, "test", op.test_id, op.verb, timestamp, op.reason, options))
    return working, results


def format_error_message(result: BatchResult) -> str:
    """Operation tally followed by one bullet per failed operation."""
    summary = result.summary
    lines = [f"Batch operation failed: {summary.invalid} of {summary.total} operations are invalid"]
    if summary.tests_not_found:
        lines.append(f"- {summary.tests_not_found} tests not found")
    if summary.phase_violations:
        lines.append(f"- {summary.phase_violations} phase violations (tests not in active phase)")
    if summary.status_violations:
        lines.append(f"- {summary.status_violations} status violations (invalid transitions)")
    lines.append("")
    lines.append("Failed operations:")
    for op in result.invalid_operations:
        lines.append(f"- {op.test_id} ({op.verb}): {op.error.message}")
    return "\n".join(lines)


def _check_operation(epic: Epic, op: TestOperation, options: Optional[TransitionOptions]) -> Optional[OperationError]:
    if op.verb not in BATCH_VERBS:
        return OperationError(
            kind=UsageError.kind,
            message=f"unsupported operation '{op.verb}' (expected one of: {', '.join(BATCH_VERBS)})",
            entity=op.test_id,
            code="unsupported_verb",
        )
    check = check_transition(epic, "test", op.test_id, op.verb, op.reason, options)
    if check.error is None:
        return None
    return _operation_error(check.error, op)


def _operation_error(error: AgentPMError, op: TestOperation) -> OperationError:
    code = error.predicate if isinstance(error, PreconditionError) else ""
    message = str(error)
    if isinstance(error, NotFoundError):
        message = f"Test {op.test_id} not found"
    return OperationError(kind=error.kind, message=message, entity=op.test_id, code=code)
