"""
Error taxonomy for agentpm.

Every failure the CLI can report is an AgentPMError subclass. Each carries a
machine-readable ``kind`` and the process ``exit_code`` the CLI should use:

- 1: user-visible failure (transition rejected, validation failed)
- 2: configuration or IO error
- 3: usage error

The lifecycle core raises these; it never prints and never exits.
"""

from dataclasses import dataclass, field
from typing import Optional


class AgentPMError(Exception):
    """Base class for all agentpm errors."""

    kind = "error"
    exit_code = 1

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": str(self)}


@dataclass
class PredicateFailure:
    """A single cross-entity prerequisite that did not hold."""
    code: str
    message: str
    entity_id: str = ""
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message}
        if self.entity_id:
            data["entity_id"] = self.entity_id
        if self.details:
            data["details"] = dict(self.details)
        return data


class NotFoundError(AgentPMError):
    """Raised when an entity ID does not exist in the document."""

    kind = "not_found"

    def __init__(self, entity_kind: str, entity_id: str, suggestion: Optional[str] = None):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.suggestion = suggestion
        message = f"{entity_kind.capitalize()} {entity_id} not found"
        if suggestion:
            message += f" (did you mean {suggestion}?)"
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity"] = {"kind": self.entity_kind, "id": self.entity_id}
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


class InvalidTransitionError(AgentPMError):
    """Raised when no transition row exists for (kind, verb, current status)."""

    kind = "invalid_transition"

    def __init__(self, entity_kind: str, entity_id: str, verb: str, from_status: str, to_status: str = ""):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.verb = verb
        self.from_status = from_status
        self.to_status = to_status
        target = f" -> {to_status}" if to_status else ""
        super().__init__(
            f"Invalid transition: cannot {verb} {entity_kind} {entity_id} "
            f"(status {from_status}{target})"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity"] = {"kind": self.entity_kind, "id": self.entity_id}
        data["verb"] = self.verb
        data["from"] = self.from_status
        data["to"] = self.to_status
        return data


class PreconditionError(AgentPMError):
    """Raised when one or more prerequisites for a transition are false.

    The first failure is the primary one; all failures are kept.
    """

    kind = "precondition_failed"

    def __init__(self, entity_kind: str, entity_id: str, verb: str, failures: list[PredicateFailure]):
        if not failures:
            raise ValueError("PreconditionError requires at least one failure")
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.verb = verb
        self.failures = list(failures)
        super().__init__(self.failures[0].message)

    @property
    def predicate(self) -> str:
        return self.failures[0].code

    @property
    def codes(self) -> list[str]:
        return [f.code for f in self.failures]

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity"] = {"kind": self.entity_kind, "id": self.entity_id}
        data["verb"] = self.verb
        data["predicate"] = self.predicate
        data["failures"] = [f.to_dict() for f in self.failures]
        return data


class BatchInvalidError(AgentPMError):
    """Raised when a batch contains at least one invalid operation."""

    kind = "batch_invalid"

    def __init__(self, result):
        self.result = result
        super().__init__(result.error_message or "Batch operation failed")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["batch"] = self.result.to_dict()
        return data


class DocumentError(AgentPMError):
    """The epic document is structurally broken (dangling references, duplicate IDs)."""

    kind = "io_error"
    exit_code = 2

    def __init__(self, path, problems: list[str]):
        self.path = path
        self.problems = list(problems)
        summary = "; ".join(self.problems[:3])
        if len(self.problems) > 3:
            summary += f" (+{len(self.problems) - 3} more)"
        super().__init__(f"Invalid epic document {path}: {summary}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["problems"] = list(self.problems)
        return data


class StorageError(AgentPMError):
    """Reading or writing the epic document failed."""

    kind = "io_error"
    exit_code = 2


class ConfigError(AgentPMError):
    """The configuration file is missing or invalid."""

    kind = "config_error"
    exit_code = 2


class UsageError(AgentPMError):
    """Bad command-line arguments or malformed input."""

    kind = "usage_error"
    exit_code = 3


class RouteError(UsageError):
    """An identifier could not be resolved to exactly one entity kind."""

    def __init__(self, entity_id: str, candidates: Optional[list[str]] = None):
        self.entity_id = entity_id
        self.candidates = list(candidates or [])
        if self.candidates:
            message = f"Ambiguous ID '{entity_id}': could be {', '.join(self.candidates)}"
        else:
            message = (
                f"Cannot determine entity type for '{entity_id}' "
                "(expected phase like 1A, task like 1A_1, or test like 1A_T1)"
            )
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity_id"] = self.entity_id
        data["candidates"] = list(self.candidates)
        return data


class QueryError(UsageError):
    """A query expression could not be compiled."""

    kind = "query_syntax_error"

    def __init__(self, query: str, message: str, suggestion: str = ""):
        self.query = query
        self.suggestion = suggestion
        super().__init__(f"Invalid query '{query}': {message}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["query"] = self.query
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data
