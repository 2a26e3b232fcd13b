"""Resolve bare entity IDs to their kind and dispatch transitions.

Patterns are tried in table order: test, task, phase. The router never looks
at the document; dispatch() hands the resolved kind to the engine.
"""

import re
from datetime import datetime
from typing import Optional

from agentpm.errors import RouteError
from agentpm.lib.constants import PHASE_ID_PATTERN, TASK_ID_PATTERN, TEST_ID_PATTERN
from agentpm.model.document import Epic
from agentpm.workflow.engine import TransitionResult, apply
from agentpm.workflow.prerequisites import TransitionOptions

ROUTES = [
    ("test", re.compile(TEST_ID_PATTERN)),
    ("task", re.compile(TASK_ID_PATTERN)),
    ("phase", re.compile(PHASE_ID_PATTERN)),
]


def candidates(entity_id: str) -> list[str]:
    """Every kind whose pattern matches the ID, in table order."""
    entity_id = entity_id.strip()
    return [kind for kind, pattern in ROUTES if pattern.match(entity_id)]


def resolve(entity_id: str) -> str:
    """Return the single kind for an ID.

    Raises:
        RouteError: No pattern matches, or more than one does
    """
    matches = candidates(entity_id)
    if len(matches) != 1:
        raise RouteError(entity_id, matches)
    return matches[0]


def dispatch(
    epic: Epic,
    entity_id: str,
    verb: str,
    timestamp: datetime,
    reason: Optional[str] = None,
    options: Optional[TransitionOptions] = None,
) -> TransitionResult:
    """Apply verb to whatever entity the ID names."""
    kind = resolve(entity_id)
    return apply(epic, kind, entity_id.strip(), verb, timestamp, reason, options)
