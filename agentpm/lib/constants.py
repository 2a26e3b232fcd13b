"""Shared constants for agentpm."""

# Entity ID patterns. Order matters for routing: test before task before phase.
TEST_ID_PATTERN = r"^[0-9]+[A-Z]_T[0-9]+$"
TASK_ID_PATTERN = r"^[0-9]+[A-Z]_[0-9]+$"
PHASE_ID_PATTERN = r"^[0-9]+[A-Z]$"

DEFAULT_CONFIG_PATH = ".agentpm.json"
DEFAULT_ASSIGNEE = "agent"

OUTPUT_FORMATS = ("text", "json", "xml")

# Event types accepted by `agentpm log`
LOG_EVENT_TYPES = ("implementation", "blocker", "issue", "milestone", "decision", "note")
DEFAULT_LOG_EVENT_TYPE = "implementation"

# File actions accepted by `agentpm log --files path:action`
FILE_ACTIONS = ("added", "modified", "deleted", "renamed")
DEFAULT_FILE_ACTION = "modified"

DEFAULT_EVENT_LIMIT = 10
